# --- WEB SERVER ---
HTTP_HOST = '0.0.0.0'
HTTP_PORT = 56666
CONTROL_ROUTE = '/living/stripe'

# --- BLE DEVICE & PROTOCOL ---
# 16-bit GATT ids of the lamp's color service and its writable color value.
LAMP_SERVICE_ID = "ff07"
LAMP_COLOR_CHARACTERISTIC = "fffc"

DESIRED_MTU = 500
CONNECT_TIMEOUT = 20.0
