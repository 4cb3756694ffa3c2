"""Switch the pressing device to another page."""

from __future__ import annotations

from decker.actions.registry import ActionContext, is_action_type
from decker.config import ButtonConfig
from decker.errors import ActionExecutionError


def page_switch(button: ButtonConfig, context: ActionContext) -> str:
    """Move the device to ``target_page``.

    A missing target raises PageNotFound from the navigator; the current
    page stays as it was.
    """
    if not is_action_type(button, "page_switch"):
        raise ActionExecutionError(button.type, "not a page_switch button")
    return context.navigator.transition(context.device_id, button.target_page)
