"""Run a script to completion, honouring its timeout and the dispatcher's cancel token.

Unlike ``launch_app`` this waits for the process, so a slow script holds the
dispatch loop until it exits, times out, or the controller shuts down.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time

from decker.actions.registry import ActionContext, is_action_type
from decker.config import ButtonConfig
from decker.errors import ActionExecutionError

logger = logging.getLogger(__name__)

# How often a running script checks for cancellation
POLL_INTERVAL = 0.1
# Grace period between SIGTERM and SIGKILL
TERMINATE_GRACE = 2.0


def _terminate(process: subprocess.Popen) -> None:
    process.terminate()
    try:
        process.communicate(timeout=TERMINATE_GRACE)
    except subprocess.TimeoutExpired:
        process.kill()
        process.communicate()


def execute_script(button: ButtonConfig, context: ActionContext) -> str:
    """Run the script and return its stripped stdout.

    A non-zero exit, a timeout, or cancellation raises ActionExecutionError.
    """
    if not is_action_type(button, "script"):
        raise ActionExecutionError(button.type, "not a script button")

    command = [button.script, *button.args]
    env = {**os.environ, **button.env} if button.env else None
    logger.info("Running script %s (key %d on %s)", button.script, context.index, context.device_id)
    try:
        process = subprocess.Popen(
            command,
            env=env,
            cwd=button.cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise ActionExecutionError("script", f"could not start {button.script}: {e}") from e

    deadline = time.monotonic() + button.timeout
    while True:
        try:
            stdout, stderr = process.communicate(timeout=POLL_INTERVAL)
            break
        except subprocess.TimeoutExpired:
            if context.cancel_token is not None and context.cancel_token.is_set():
                _terminate(process)
                raise ActionExecutionError("script", f"{button.script} cancelled") from None
            if time.monotonic() >= deadline:
                _terminate(process)
                raise ActionExecutionError(
                    "script", f"{button.script} timed out after {button.timeout}s"
                ) from None

    if process.returncode != 0:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
        raise ActionExecutionError(
            "script", f"{button.script} exited with {process.returncode}: {detail}"
        )
    logger.debug("Script %s finished: %s", button.script, stdout.strip())
    return stdout.strip()
