"""Main entry point for the Decker controller."""

from __future__ import annotations

import logging
import signal
import sys
import threading
from typing import Any

import httpx

from decker import __version__
from decker.actions.builtin import build_default_registry
from decker.actions.http_request import DEFAULT_TIMEOUT
from decker.config import ConfigStore, DeckerConfig, GlobalSettings, load_config
from decker.device import DeviceBridge, StubDevice
from decker.dispatcher import EventDispatcher
from decker.errors import ConfigLoadError
from decker.hardware import StreamDeckDevice
from decker.navigator import PageNavigator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def configure_logging(settings: GlobalSettings) -> None:
    """Apply ``log_level`` and ``log_file`` from the global settings."""
    root = logging.getLogger()
    root.setLevel(_LOG_LEVELS[settings.log_level])
    if settings.log_file:
        handler = logging.FileHandler(settings.log_file)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        root.addHandler(handler)


class DeckerController:
    """Wires config, navigation, actions, and devices together."""

    def __init__(self, config: DeckerConfig) -> None:
        self.config = config
        self._shutdown = threading.Event()

        self.store = ConfigStore(config)
        self.navigator = PageNavigator(self.store)
        self._http_client = httpx.Client(timeout=DEFAULT_TIMEOUT)
        self.registry = build_default_registry(self._http_client)
        self.dispatcher = EventDispatcher(self.navigator, self.registry)

        self._devices: dict[str, DeviceBridge] = {}

    @property
    def devices(self) -> dict[str, DeviceBridge]:
        return dict(self._devices)

    def discover_devices(self) -> list[DeviceBridge]:
        """Connected hardware, or a stub per configured device if none is found."""
        found: list[DeviceBridge] = []
        for deck in StreamDeckDevice.enumerate():
            if deck.open():
                found.append(deck)
        if not found:
            logger.info("Using stub devices (no hardware found)")
            found = [StubDevice(device_id) for device_id in self.store.device_ids()]
            for stub in found:
                stub.open()
        return found

    def start(self, devices: list[DeviceBridge] | None = None) -> None:
        """Attach devices whose id is configured and start dispatching."""
        logger.info("Starting Decker controller")
        if devices is None:
            devices = self.discover_devices()

        configured = set(self.store.device_ids())
        for device in devices:
            if device.device_id not in configured:
                logger.warning("Device %s has no configuration, ignoring it", device.device_id)
                device.close()
                continue
            self.navigator.reset(device.device_id)
            self.dispatcher.attach(device.device_id, device)
            self._devices[device.device_id] = device

        if not self._devices:
            logger.warning("No configured devices attached")

        self.dispatcher.start()
        logger.info("Decker controller running (%d device(s))", len(self._devices))

    def stop(self) -> None:
        """Clean shutdown."""
        logger.info("Shutting down Decker controller")
        self._shutdown.set()
        self.dispatcher.stop()
        for device in self._devices.values():
            device.close()
        self._devices.clear()
        self._http_client.close()
        logger.info("Decker controller stopped")

    def wait(self) -> None:
        """Block until shutdown is signaled."""
        try:
            while not self._shutdown.is_set():
                self._shutdown.wait(timeout=1.0)
        except KeyboardInterrupt:
            pass


def main() -> None:
    """Entry point."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

    logger.info("Decker v%s", __version__)

    try:
        config = load_config(sys.argv[1] if len(sys.argv) > 1 else None)
    except ConfigLoadError as e:
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    configure_logging(config.global_settings)
    controller = DeckerController(config)

    # Handle signals for clean shutdown
    def _signal_handler(sig: int, frame: Any) -> None:
        logger.info("Received signal %d, shutting down", sig)
        controller._shutdown.set()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    controller.start()
    controller.wait()
    controller.stop()


if __name__ == "__main__":
    main()
