"""Send a configured HTTP request."""

from __future__ import annotations

import logging

import httpx

from decker.actions.registry import ActionContext, is_action_type
from decker.config import ButtonConfig
from decker.errors import ActionExecutionError

logger = logging.getLogger(__name__)

# Timeout: 5s connect, 10s total; a key press should not hang the dispatch loop
DEFAULT_TIMEOUT = httpx.Timeout(10.0, connect=5.0)


class HttpRequestHandler:
    """Handler for ``http`` buttons sharing one httpx client."""

    def __init__(self, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    def close(self) -> None:
        self._client.close()

    def __call__(self, button: ButtonConfig, context: ActionContext) -> int:
        if not is_action_type(button, "http"):
            raise ActionExecutionError(button.type, "not an http button")

        logger.info("HTTP %s %s (key %d on %s)", button.method, button.url,
                    context.index, context.device_id)
        kwargs = {"headers": button.headers}
        if button.body is not None:
            if isinstance(button.body, (dict, list)):
                kwargs["json"] = button.body
            else:
                kwargs["content"] = str(button.body)
        try:
            resp = self._client.request(button.method, button.url, **kwargs)
        except httpx.HTTPError as e:
            raise ActionExecutionError("http", f"{button.method} {button.url}: {e}") from e

        if resp.status_code >= 400:
            raise ActionExecutionError(
                "http", f"{button.method} {button.url} returned {resp.status_code}"
            )
        return resp.status_code
