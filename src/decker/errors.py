"""Error taxonomy for configuration loading, navigation, and action dispatch."""

from __future__ import annotations


class DeckerError(Exception):
    """Base class for all Decker errors."""


class ConfigLoadError(DeckerError):
    """Raised when a configuration source can't be read, parsed, or validated.

    Fatal: startup aborts.
    """


class ConfigValidationError(DeckerError):
    """Raised when a referenced device or page does not exist."""


class DeviceNotFound(ConfigValidationError):
    def __init__(self, device_id: str):
        self.device_id = device_id
        super().__init__(f"Device {device_id!r} is not configured")


class PageNotFound(ConfigValidationError):
    def __init__(self, device_id: str, page_id: str):
        self.device_id = device_id
        self.page_id = page_id
        super().__init__(f"Page {page_id!r} does not exist for device {device_id!r}")


class UnknownActionType(DeckerError):
    """Raised when a button's type has no registered handler."""

    def __init__(self, action_type: str):
        self.action_type = action_type
        super().__init__(f"No handler registered for action type {action_type!r}")


class ActionExecutionError(DeckerError):
    """Raised when an action's side effect fails (process launch, HTTP call, device write)."""

    def __init__(self, action_type: str, message: str):
        self.action_type = action_type
        self.message = message
        super().__init__(f"{action_type} failed: {message}")
