"""Device bridge boundary: control events and the driver protocol.

The hardware driver is an external collaborator. It delivers press, release
and error notifications through a single callback and accepts two rendering
commands (fill a key with a colour, clear a key). ``StubDevice`` implements
the same surface in memory for running without hardware and for tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

EventKind = Literal["down", "up", "error"]


@dataclass(frozen=True)
class Control:
    """The physical control an event refers to. Only "button" is acted on."""

    type: str
    index: int


@dataclass(frozen=True)
class ControlEvent:
    kind: EventKind
    device_id: str
    control: Control | None = None
    error: BaseException | None = None


EventCallback = Callable[[ControlEvent], None]


class DeviceError(Exception):
    pass


@runtime_checkable
class DeviceBridge(Protocol):
    @property
    def device_id(self) -> str: ...

    def open(self) -> bool: ...

    def close(self) -> None: ...

    def set_event_callback(self, callback: EventCallback) -> None: ...

    def fill_key_color(self, index: int, r: int, g: int, b: int) -> None: ...

    def clear_key(self, index: int) -> None: ...


class StubDevice:
    """Stub device for running without hardware."""

    def __init__(self, device_id: str = "STUB", key_count: int = 15) -> None:
        self._device_id = device_id
        self.key_count = key_count
        self._callback: EventCallback | None = None
        self.key_colors: dict[int, tuple[int, int, int]] = {}
        self.calls: list[tuple] = []
        self.is_open = False

    @property
    def device_id(self) -> str:
        return self._device_id

    def open(self) -> bool:
        self.is_open = True
        logger.info("Stub device %s opened", self._device_id)
        return True

    def close(self) -> None:
        self.is_open = False
        logger.info("Stub device %s closed", self._device_id)

    def set_event_callback(self, callback: EventCallback) -> None:
        self._callback = callback

    def fill_key_color(self, index: int, r: int, g: int, b: int) -> None:
        self.calls.append(("fill", index, (r, g, b)))
        self.key_colors[index] = (r, g, b)
        logger.debug("Stub: key %d filled with (%d, %d, %d)", index, r, g, b)

    def clear_key(self, index: int) -> None:
        self.calls.append(("clear", index))
        self.key_colors.pop(index, None)
        logger.debug("Stub: key %d cleared", index)

    def _emit(self, event: ControlEvent) -> None:
        if self._callback:
            self._callback(event)

    def simulate_down(self, index: int) -> None:
        """For testing: simulate a key press."""
        self._emit(ControlEvent("down", self._device_id, Control("button", index)))

    def simulate_up(self, index: int) -> None:
        """For testing: simulate a key release."""
        self._emit(ControlEvent("up", self._device_id, Control("button", index)))

    def simulate_error(self, error: BaseException) -> None:
        self._emit(ControlEvent("error", self._device_id, error=error))
