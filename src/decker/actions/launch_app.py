"""Launch an external application, fire-and-forget."""

from __future__ import annotations

import logging
import os
import subprocess
import sys

from decker.actions.registry import ActionContext, is_action_type
from decker.config import ButtonConfig, LaunchAppAction
from decker.errors import ActionExecutionError

logger = logging.getLogger(__name__)


def build_command(action: LaunchAppAction, platform: str = sys.platform) -> list[str]:
    """Command line for the action. macOS .app bundles go through ``open -a``."""
    if platform == "darwin" and action.path.rstrip("/").endswith(".app"):
        command = ["open", "-a", action.path]
        if action.args:
            command += ["--args", *action.args]
        return command
    return [action.path, *action.args]


def launch_app(button: ButtonConfig, context: ActionContext) -> int:
    """Spawn the configured application and return its pid without waiting on it."""
    if not is_action_type(button, "launch_app"):
        raise ActionExecutionError(button.type, "not a launch_app button")

    command = build_command(button)
    env = {**os.environ, **button.env} if button.env else None
    logger.info("Launching %s (key %d on %s)", button.path, context.index, context.device_id)
    try:
        process = subprocess.Popen(
            command,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
    except OSError as e:
        raise ActionExecutionError("launch_app", f"could not start {button.path}: {e}") from e
    return process.pid
