"""Registry preloaded with the built-in action types."""

from __future__ import annotations

import httpx

from decker.actions.execute_script import execute_script
from decker.actions.http_request import HttpRequestHandler
from decker.actions.launch_app import launch_app
from decker.actions.page_switch import page_switch
from decker.actions.registry import ActionRegistry


def build_default_registry(http_client: httpx.Client | None = None) -> ActionRegistry:
    registry = ActionRegistry()
    registry.register("launch_app", launch_app)
    registry.register("script", execute_script)
    registry.register("page_switch", page_switch)
    registry.register("http", HttpRequestHandler(http_client))
    return registry
