"""Discriminant-keyed action registry.

Handlers are registered per ``type`` string and looked up at dispatch time,
so new action kinds plug in without touching the dispatch code. Dispatch
never raises: unknown types and handler failures come back as a
``DispatchOutcome`` and are logged here.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Literal

from decker.config import ButtonConfig
from decker.errors import ActionExecutionError, ConfigValidationError, DeckerError, UnknownActionType

if TYPE_CHECKING:
    from decker.device import DeviceBridge
    from decker.navigator import PageNavigator

logger = logging.getLogger(__name__)


def is_action_type(button: ButtonConfig, action_type: str) -> bool:
    """True iff ``button`` is the variant tagged ``action_type``."""
    return button.type == action_type


@dataclass
class ActionContext:
    """Everything a handler may touch while running."""

    device_id: str
    index: int
    navigator: PageNavigator
    device: DeviceBridge | None = None
    # Set when the dispatcher stops; long-running handlers poll it
    cancel_token: threading.Event | None = None


@dataclass
class DispatchOutcome:
    action_type: str
    status: Literal["success", "unknown", "failed"]
    result: Any = None
    error: DeckerError | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


Handler = Callable[[ButtonConfig, ActionContext], Any]


class ActionRegistry:
    """Maps action type strings to handler callables."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, action_type: str, handler: Handler, replace: bool = False) -> None:
        if action_type in self._handlers and not replace:
            raise ValueError(f"Handler already registered for action type {action_type!r}")
        self._handlers[action_type] = handler
        logger.debug("Registered handler for %s", action_type)

    def handler(self, action_type: str) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`register`."""
        def decorator(func: Handler) -> Handler:
            self.register(action_type, func)
            return func
        return decorator

    def unregister(self, action_type: str) -> None:
        self._handlers.pop(action_type, None)

    def types(self) -> list[str]:
        return sorted(self._handlers)

    def __contains__(self, action_type: object) -> bool:
        return action_type in self._handlers

    def dispatch(self, button: ButtonConfig, context: ActionContext) -> DispatchOutcome:
        """Run the handler registered for ``button.type`` exactly once."""
        action_type = button.type
        handler = self._handlers.get(action_type)
        if handler is None:
            error = UnknownActionType(action_type)
            logger.warning("Key %d on %s: %s", context.index, context.device_id, error)
            return DispatchOutcome(action_type, "unknown", error=error)

        try:
            result = handler(button, context)
        except (ConfigValidationError, ActionExecutionError) as e:
            logger.warning("Action %s failed on %s key %d: %s",
                           action_type, context.device_id, context.index, e)
            return DispatchOutcome(action_type, "failed", error=e)
        except Exception as e:
            logger.exception("Action %s raised on %s key %d",
                             action_type, context.device_id, context.index)
            return DispatchOutcome(action_type, "failed", error=ActionExecutionError(action_type, str(e)))

        logger.info("Action succeeded: %s (%s key %d)", action_type, context.device_id, context.index)
        return DispatchOutcome(action_type, "success", result=result)
