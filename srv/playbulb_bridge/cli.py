"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import threading

import typer

from . import config
from .ble_handler import DeviceStateMachine, LampBridge
from .errors import LampBridgeError
from .logging_setup import get_logger, setup_logging
from .radio import BleakRadioAdapter
from .state_manager import ColorStore
from .web_routes import create_app, run_flask_app

logger = get_logger(__name__)

app = typer.Typer(help="Bridge HTTP color requests to a PLAYBULB lamp over BLE", add_completion=False)


def build_bridge(peripheral_id: str, adapter=None) -> tuple[ColorStore, LampBridge]:
    store = ColorStore()
    machine = DeviceStateMachine(peripheral_id, store)
    bridge = LampBridge(adapter if adapter is not None else BleakRadioAdapter(), machine)
    return store, bridge


@app.command()
def serve(
    peripheral_id: str = typer.Argument(..., help="Hardware address of the lamp (case-insensitive)"),
    host: str = typer.Option(config.HTTP_HOST, help="Interface the HTTP server binds to"),
    port: int = typer.Option(config.HTTP_PORT, help="HTTP port"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Serve POST /living/stripe and apply requested colors to the lamp."""
    setup_logging(verbose)
    store, bridge = build_bridge(peripheral_id)
    web_app = create_app(store, bridge)

    # The web server gets its own thread; the BLE loop owns the main thread.
    threading.Thread(target=run_flask_app, args=(web_app, host, port), daemon=True).start()

    try:
        logger.info("Starting BLE communication task...")
        asyncio.run(bridge.run())
    except KeyboardInterrupt:
        logger.info("Program stopped by user.")
    except LampBridgeError as exc:
        logger.critical("%s", exc)
        raise typer.Exit(code=1) from None
    except Exception as exc:
        logger.critical("Fatal error in BLE task: %s", exc)
        raise typer.Exit(code=1) from None


def main() -> None:
    app()
