"""Per-device page navigation state.

Tracks which page is active on each device and resolves key presses against
it. Wraps the current-page table with an RLock so the dispatch thread and
the controller can both touch it. This is the only mutable runtime state;
the configuration itself is read-only.
"""

from __future__ import annotations

import logging
import threading

from decker.config import ButtonConfig, ConfigStore
from decker.errors import PageNotFound

logger = logging.getLogger(__name__)


class PageNavigator:
    """Current-page state machine, one slot per device."""

    def __init__(self, store: ConfigStore) -> None:
        self._store = store
        self._current: dict[str, str] = {}
        self._lock = threading.RLock()

    @property
    def store(self) -> ConfigStore:
        return self._store

    def current_page(self, device_id: str) -> str:
        """Active page for ``device_id``, starting at the configured default.

        Raises DeviceNotFound for a device that isn't configured.
        """
        with self._lock:
            page_id = self._current.get(device_id)
            if page_id is None:
                page_id = self._store.default_page(device_id)
                self._current[device_id] = page_id
            return page_id

    def resolve_button(self, device_id: str, index: int) -> ButtonConfig | None:
        """Look up the button at ``index`` on the device's active page.

        Returns None for an unassigned key. Raises PageNotFound if the active
        page itself is missing (e.g. no "default" page configured).
        """
        with self._lock:
            return self._store.get_button(device_id, self.current_page(device_id), index)

    def transition(self, device_id: str, target_page_id: str) -> str:
        """Make ``target_page_id`` the active page and return it.

        Raises PageNotFound and leaves the current page untouched when the
        target isn't defined for the device.
        """
        with self._lock:
            previous = self.current_page(device_id)
            if not self._store.has_page(device_id, target_page_id):
                logger.warning(
                    "Page switch rejected on %s: %r does not exist (staying on %r)",
                    device_id, target_page_id, previous,
                )
                raise PageNotFound(device_id, target_page_id)
            self._current[device_id] = target_page_id
            logger.info("Device %s: page %r -> %r", device_id, previous, target_page_id)
            return target_page_id

    def reset(self, device_id: str | None = None) -> None:
        """Drop runtime state so the device(s) start again from the default page."""
        with self._lock:
            if device_id is None:
                self._current.clear()
            else:
                self._current.pop(device_id, None)
