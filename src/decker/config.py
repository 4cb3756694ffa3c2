"""Layered YAML/JSON config loader with Pydantic validation.

The resolved configuration is a frozen model tree held for the process
lifetime by :class:`ConfigStore`. Runtime navigation state lives elsewhere
(see ``decker.navigator``).
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    ValidationError,
    field_validator,
    model_validator,
)

from decker.errors import ConfigLoadError, DeviceNotFound, PageNotFound
from decker.merge import deep_merge

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAMES = ("decker.json", "decker.yaml")
DEFAULT_PAGE = "default"

_DEFAULT_LAYER: dict[str, Any] = {
    "devices": {},
    "global_settings": {"log_level": "info"},
}

_HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


def _resolve_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""
    pattern = re.compile(r"\$\{(\w+)\}")
    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        env_val = os.environ.get(var_name)
        if env_val is None:
            raise ConfigLoadError(f"Environment variable {var_name} is not set")
        return env_val
    return pattern.sub(replacer, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Walk a nested dict/list and resolve env vars in string values."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    if isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    if isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


class GlobalSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_file: str | None = None


class ButtonBase(BaseModel):
    """Visual fields shared by every button variant."""

    model_config = ConfigDict(frozen=True)

    type: str
    text: str = ""
    image: str | None = None
    color: str | None = Field(default=None, pattern=_HEX_COLOR)
    font_size: int | None = Field(default=None, gt=0)
    text_color: str | None = Field(default=None, pattern=_HEX_COLOR)
    stateful: bool | None = None
    state_images: dict[str, str] | None = None

    def rgb(self) -> tuple[int, int, int] | None:
        """Parse ``color`` into an (r, g, b) tuple, or None if unset."""
        if self.color is None:
            return None
        value = self.color.lstrip("#")
        return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


class LaunchAppAction(ButtonBase):
    type: Literal["launch_app"] = "launch_app"
    path: str = Field(min_length=1)
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)

    @field_validator("path")
    @classmethod
    def path_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("launch_app requires a non-empty path")
        return v


class ScriptAction(ButtonBase):
    """Run a script and wait for it, up to ``timeout`` seconds."""

    type: Literal["script"] = "script"
    script: str = Field(min_length=1)
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: str | None = None
    timeout: float = Field(default=30.0, gt=0)


class PageSwitchAction(ButtonBase):
    type: Literal["page_switch"] = "page_switch"
    target_page: str = Field(min_length=1)


class HttpRequestAction(ButtonBase):
    type: Literal["http"] = "http"
    method: Literal["GET", "POST", "PUT", "DELETE", "PATCH"] = "GET"
    url: str = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = None


class UnknownAction(ButtonBase):
    """Fallback for action types with no built-in schema.

    Extra keys are kept so a handler registered for the type can read them
    from ``model_extra``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")


KNOWN_ACTION_TYPES = ("launch_app", "script", "page_switch", "http")


def _button_discriminator(value: Any) -> str:
    action_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return action_type if action_type in KNOWN_ACTION_TYPES else "unknown"


ButtonConfig = Annotated[
    Union[
        Annotated[LaunchAppAction, Tag("launch_app")],
        Annotated[ScriptAction, Tag("script")],
        Annotated[PageSwitchAction, Tag("page_switch")],
        Annotated[HttpRequestAction, Tag("http")],
        Annotated[UnknownAction, Tag("unknown")],
    ],
    Discriminator(_button_discriminator),
]


class DialConfig(BaseModel):
    """A dial slot. Type-specific keys are kept as extras."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str
    text: str | None = None


class PageConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    buttons: dict[int, ButtonConfig] = Field(default_factory=dict)
    dials: dict[str, DialConfig] = Field(default_factory=dict)

    @field_validator("buttons", mode="before")
    @classmethod
    def validate_button_keys(cls, v: Any) -> dict[int, Any]:
        if not isinstance(v, dict):
            return v
        result = {}
        for key, val in v.items():
            try:
                k = int(key)
            except (TypeError, ValueError):
                raise ValueError(f"Button key {key!r} is not an integer") from None
            if k < 0:
                raise ValueError(f"Button key {k} must be non-negative")
            result[k] = val
        return result


class DeviceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = ""
    pages: dict[str, PageConfig] = Field(default_factory=dict)
    default_page: str | None = None

    @model_validator(mode="after")
    def default_page_exists(self) -> DeviceConfig:
        if self.default_page is not None and self.default_page not in self.pages:
            raise ValueError(f"Default page {self.default_page!r} not found in device pages")
        return self


class DeckerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    devices: dict[str, DeviceConfig] = Field(default_factory=dict)
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings)
    version: str | None = None


def build_config(data: Mapping[str, Any]) -> DeckerConfig:
    """Validate a merged tree into a DeckerConfig."""
    try:
        return DeckerConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigLoadError(f"Invalid configuration: {e}") from e


class ConfigStore:
    """Holds the resolved configuration and answers device/page/button lookups.

    Lookups return deep copies, so callers can never reach the stored tree
    through a nested list or dict.
    """

    def __init__(self, config: DeckerConfig | None = None) -> None:
        self._config = config.model_copy(deep=True) if config is not None else DeckerConfig()

    @property
    def config(self) -> DeckerConfig:
        return self._config.model_copy(deep=True)

    def load(self, layers: Iterable[Mapping[str, Any]]) -> DeckerConfig:
        """Merge ``layers`` over the built-in defaults (later layers win) and keep the result."""
        try:
            merged = deep_merge(_DEFAULT_LAYER, *layers)
        except ValueError as e:
            raise ConfigLoadError(f"Invalid configuration: {e}") from e
        self._config = build_config(merged)
        logger.info("Configuration loaded: %d device(s)", len(self._config.devices))
        return self.config

    def device_ids(self) -> list[str]:
        return list(self._config.devices)

    def get_device(self, device_id: str) -> DeviceConfig:
        return self._device(device_id).model_copy(deep=True)

    def get_page(self, device_id: str, page_id: str) -> PageConfig:
        return self._page(device_id, page_id).model_copy(deep=True)

    def _page(self, device_id: str, page_id: str) -> PageConfig:
        page = self._device(device_id).pages.get(page_id)
        if page is None:
            raise PageNotFound(device_id, page_id)
        return page

    def _device(self, device_id: str) -> DeviceConfig:
        device = self._config.devices.get(device_id)
        if device is None:
            raise DeviceNotFound(device_id)
        return device

    def get_button(self, device_id: str, page_id: str, index: int) -> ButtonConfig | None:
        """Return the button at ``index``, or None when nothing is assigned there.

        A missing page is still an error.
        """
        button = self._page(device_id, page_id).buttons.get(index)
        return button.model_copy(deep=True) if button is not None else None

    def has_page(self, device_id: str, page_id: str) -> bool:
        return page_id in self._device(device_id).pages

    def default_page(self, device_id: str) -> str:
        return self._device(device_id).default_page or DEFAULT_PAGE


def read_layer(path: str | Path) -> dict[str, Any]:
    """Read one YAML or JSON config file into a plain dict."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigLoadError(f"Configuration file not found: {path}") from e
    except OSError as e:
        raise ConfigLoadError(f"Error reading configuration from {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid syntax in configuration file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise ConfigLoadError(f"Configuration file {path} is not valid UTF-8: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Configuration root in {path} must be a mapping")
    return _resolve_env_recursive(raw)


def find_config_file() -> Path | None:
    """Locate a config file.

    Resolution order:
    1. DECKER_CONFIG env var
    2. decker.json / decker.yaml in the working directory
    3. decker.json / decker.yaml in ~/.config/decker
    """
    env_path = os.environ.get("DECKER_CONFIG")
    if env_path:
        return Path(env_path)

    for location in (Path.cwd(), Path.home() / ".config" / "decker"):
        for filename in DEFAULT_CONFIG_FILENAMES:
            candidate = location / filename
            if candidate.is_file():
                return candidate
    return None


def load_config(
    config_path: str | Path | None = None,
    overrides: Iterable[str | Path] = (),
) -> DeckerConfig:
    """Load, merge, and validate config files.

    ``config_path`` (or the file found by :func:`find_config_file`) is the
    base layer; each path in ``overrides`` is merged on top of it in order.
    With no file at all the built-in defaults are returned.
    """
    if config_path is None:
        config_path = find_config_file()

    layers = []
    if config_path is None:
        logger.warning("No configuration file found, using defaults")
    else:
        logger.info("Loading configuration from %s", config_path)
        layers.append(read_layer(config_path))
    for override in overrides:
        logger.info("Applying configuration override %s", override)
        layers.append(read_layer(override))

    return ConfigStore().load(layers)


def dump_config(config: DeckerConfig) -> dict[str, Any]:
    """Serialize a config to JSON-compatible primitives (button keys become strings)."""
    return config.model_dump(mode="json", exclude_none=True)


def save_config(config: DeckerConfig, path: str | Path) -> None:
    """Persist a config as JSON (``.json``) or YAML (anything else)."""
    path = Path(path)
    data = dump_config(config)
    try:
        with open(path, "w", encoding="utf-8") as f:
            if path.suffix == ".json":
                json.dump(data, f, indent=2)
            else:
                yaml.dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigLoadError(f"Error saving configuration to {path}: {e}") from e
