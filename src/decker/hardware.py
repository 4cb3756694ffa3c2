"""Stream Deck hardware adapter built on the python-elgato-streamdeck library.

Translates the library's per-key callbacks into ``ControlEvent``s and
renders solid key colours through Pillow. Enumeration and selection stay
here; the dispatch core only sees the ``DeviceBridge`` surface.
"""

from __future__ import annotations

import logging

from PIL import Image
from StreamDeck.DeviceManager import DeviceManager, ProbeError
from StreamDeck.ImageHelpers import PILHelper
from StreamDeck.Transport.Transport import TransportError

from decker.device import Control, ControlEvent, DeviceError, EventCallback

logger = logging.getLogger(__name__)


class StreamDeckDevice:
    """Wraps one ``StreamDeck`` instance from ``DeviceManager().enumerate()``."""

    def __init__(self, deck) -> None:
        self._deck = deck
        self._device_id = ""
        self._callback: EventCallback | None = None

    @classmethod
    def enumerate(cls) -> list[StreamDeckDevice]:
        """All connected decks, unopened."""
        try:
            decks = DeviceManager().enumerate()
        except (ProbeError, TransportError, OSError) as e:
            logger.warning("Stream Deck enumeration failed: %s", e)
            return []
        return [cls(deck) for deck in decks]

    @property
    def device_id(self) -> str:
        return self._device_id

    def open(self) -> bool:
        """Open the deck and read its serial number (used as the device id)."""
        try:
            self._deck.open()
            self._deck.reset()
            self._device_id = self._deck.get_serial_number()
            self._deck.set_key_callback(self._on_key_change)
        except (TransportError, OSError):
            logger.exception("Failed to open Stream Deck")
            return False
        logger.info("Connected to %s (%s) with %d keys",
                    self._deck.deck_type(), self._device_id, self._deck.key_count())
        return True

    def close(self) -> None:
        try:
            with self._deck:
                self._deck.reset()
                self._deck.close()
        except (TransportError, OSError) as e:
            logger.warning("Error closing Stream Deck %s: %s", self._device_id, e)
        logger.info("Stream Deck %s released", self._device_id)

    def set_event_callback(self, callback: EventCallback) -> None:
        self._callback = callback

    def _on_key_change(self, deck, key: int, state: bool) -> None:
        """Library callback, runs on the deck's reader thread."""
        if self._callback is None:
            return
        kind = "down" if state else "up"
        self._callback(ControlEvent(kind, self._device_id, Control("button", key)))

    def fill_key_color(self, index: int, r: int, g: int, b: int) -> None:
        if not self._deck.is_visual():
            return
        image = PILHelper.create_key_image(self._deck, background=(r, g, b))
        self._set_key_image(index, image)

    def clear_key(self, index: int) -> None:
        if not self._deck.is_visual():
            return
        self._set_key_image(index, PILHelper.create_key_image(self._deck, background="black"))

    def _set_key_image(self, index: int, image: Image.Image) -> None:
        native = PILHelper.to_native_key_format(self._deck, image)
        try:
            with self._deck:
                self._deck.set_key_image(index, native)
        except TransportError as e:
            if self._callback is not None:
                self._callback(ControlEvent("error", self._device_id, error=e))
            raise DeviceError(f"Failed to update key {index} on {self._device_id}: {e}") from e
