from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import BadRequest

from . import config
from .color import CHANNEL_NAMES, COLOR_OFF, PRESETS, Color
from .errors import ChannelDecodeError
from .logging_setup import get_logger

logger = get_logger(__name__)

REQUEST_FIELDS = ("action", "r", "g", "b")


class InvalidRequest(ValueError):
    pass


def parse_lamp_request(data):
    """
    Validate a decoded JSON body into {action, r, g, b}.

    Keys match case-insensitively, absent or null fields become '' and a
    null body is the all-empty request. Any other non-string value is
    rejected.
    """
    fields = dict.fromkeys(REQUEST_FIELDS, "")
    if data is None:
        return fields
    if not isinstance(data, dict):
        raise InvalidRequest("body is not a JSON object")
    for key, value in data.items():
        name = key if key in fields else key.lower()
        if name not in fields or value is None:
            continue
        if not isinstance(value, str):
            raise InvalidRequest(f"field {key!r} must be a string")
        fields[name] = value
    return fields


def resolve_color(fields):
    """Map a validated request onto the color to show. Unknown actions mean off."""
    action = fields["action"]
    if action in PRESETS:
        return PRESETS[action]
    if action == "custom":
        return Color.from_hex_channels(fields["r"], fields["g"], fields["b"])
    return COLOR_OFF


def _plain_error(message, status=400):
    return Response(message, status=status, mimetype="text/plain")


def _has_body():
    return request.content_length is not None or "Transfer-Encoding" in request.headers


def create_app(store, bridge):
    app = Flask(__name__)

    # --- API Routes ---

    @app.route(config.CONTROL_ROUTE, methods=["POST"], strict_slashes=False)
    def lamp_control():
        if not _has_body():
            return _plain_error("Please send a request body")

        response = Response(status=200)
        try:
            data = request.get_json(force=True)
            color = resolve_color(parse_lamp_request(data))
        except (BadRequest, InvalidRequest) as e:
            logger.info("Rejected lamp request: %s", e)
            color = COLOR_OFF
            response = _plain_error("Cannot decode string. ")
        except ChannelDecodeError as e:
            logger.info("Rejected custom color: %s", e)
            color = COLOR_OFF
            response = _plain_error("".join(
                f"Cannot decode {CHANNEL_NAMES[ch]} param. " for ch in e.channels))

        store.set(color)
        logger.debug("Pending color is now %s", color.hex())

        # Fire and forget: the BLE cycle runs on its own loop.
        bridge.request_reconnect()
        return response

    @app.route('/api/status')
    def api_status():
        return jsonify(bridge.status())

    return app


# --- Flask App Runner ---


def run_flask_app(app, host=config.HTTP_HOST, port=config.HTTP_PORT):
    """Starts the Flask web server."""
    logger.info("Starting Flask web server on http://%s:%d", host, port)
    app.run(host=host, port=port, debug=False, use_reloader=False, threaded=True)
