"""Ordered event dispatch from devices to actions.

Device drivers call :meth:`EventDispatcher.submit` from their own reader
threads. Each device gets its own FIFO; a single dispatch thread takes one
event at a time and runs it to completion before the next, so a page switch
always lands before the following key lookup on that device.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque

from decker.actions.registry import ActionContext, ActionRegistry, DispatchOutcome
from decker.device import ControlEvent, DeviceBridge
from decker.errors import ConfigValidationError
from decker.navigator import PageNavigator

logger = logging.getLogger(__name__)

# Key fill on press when the button sets no colour of its own
DEFAULT_PRESS_COLOR = (255, 0, 0)


class EventDispatcher:
    """Consumes per-device event queues on one thread."""

    def __init__(
        self,
        navigator: PageNavigator,
        registry: ActionRegistry,
        press_color: tuple[int, int, int] = DEFAULT_PRESS_COLOR,
    ) -> None:
        self.navigator = navigator
        self.registry = registry
        self.press_color = press_color
        self._devices: dict[str, DeviceBridge] = {}
        self._queues: dict[str, deque[ControlEvent]] = {}
        self._queues_lock = threading.Lock()
        # One token per submitted event, naming the device whose queue holds it
        self._ready: queue.Queue[str] = queue.Queue()
        self._shutdown = threading.Event()
        # Handed to every action; set on stop so a running script can bail out
        self.cancel_token = threading.Event()
        self._thread: threading.Thread | None = None

    def attach(self, device_id: str, device: DeviceBridge) -> None:
        """Route a device's events into this dispatcher."""
        self._devices[device_id] = device
        with self._queues_lock:
            self._queues.setdefault(device_id, deque())
        device.set_event_callback(self.submit)
        logger.info("Device %s attached (page %r)", device_id, self.navigator.current_page(device_id))

    def submit(self, event: ControlEvent) -> None:
        """Queue an event. Safe to call from any thread."""
        with self._queues_lock:
            self._queues.setdefault(event.device_id, deque()).append(event)
        self._ready.put(event.device_id)

    def pending(self, device_id: str) -> int:
        with self._queues_lock:
            return len(self._queues.get(device_id, ()))

    def process_next(self, timeout: float | None = None) -> bool:
        """Handle one queued event. Returns False if none arrived within ``timeout``."""
        try:
            device_id = self._ready.get(timeout=timeout) if timeout else self._ready.get_nowait()
        except queue.Empty:
            return False
        with self._queues_lock:
            event = self._queues[device_id].popleft()
        try:
            self.handle_event(event)
        except Exception:
            logger.exception("Unhandled error processing %s event from %s", event.kind, device_id)
        return True

    def process_pending(self) -> int:
        """Drain everything queued so far on the calling thread."""
        count = 0
        while self.process_next():
            count += 1
        return count

    def start(self) -> None:
        self._shutdown.clear()
        self.cancel_token.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="event-dispatch")
        self._thread.start()
        logger.info("Event dispatch loop started")

    def stop(self) -> None:
        self._shutdown.set()
        self.cancel_token.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2.0)
        self._thread = None
        logger.info("Event dispatch loop stopped")

    def _run(self) -> None:
        while not self._shutdown.is_set():
            self.process_next(timeout=0.1)

    def handle_event(self, event: ControlEvent) -> DispatchOutcome | None:
        """Process a single event to completion."""
        if event.kind == "error":
            logger.error("Device %s reported an error: %s", event.device_id, event.error)
            return None

        control = event.control
        if control is None or control.type != "button":
            logger.debug("Ignoring %s on %s: not a button", event.kind, event.device_id)
            return None

        if event.kind == "up":
            self._device_call(event.device_id, "clear_key", control.index)
            return None

        return self._on_button_down(event.device_id, control.index)

    def _on_button_down(self, device_id: str, index: int) -> DispatchOutcome | None:
        try:
            button = self.navigator.resolve_button(device_id, index)
        except ConfigValidationError as e:
            logger.warning("Key %d on %s not resolved: %s", index, device_id, e)
            return None

        color = (button.rgb() if button else None) or self.press_color
        self._device_call(device_id, "fill_key_color", index, *color)

        if button is None:
            logger.debug("Key %d pressed on %s but not configured", index, device_id)
            return None

        logger.info("Key %d pressed on %s: %s (%s)", index, device_id, button.text, button.type)
        context = ActionContext(
            device_id=device_id,
            index=index,
            navigator=self.navigator,
            device=self._devices.get(device_id),
            cancel_token=self.cancel_token,
        )
        return self.registry.dispatch(button, context)

    def _device_call(self, device_id: str, method: str, *args: int) -> None:
        """Fire a rendering command; failures are logged, never raised."""
        device = self._devices.get(device_id)
        if device is None:
            return
        try:
            getattr(device, method)(*args)
        except Exception as e:
            logger.warning("Device %s %s%s failed: %s", device_id, method, args, e)
