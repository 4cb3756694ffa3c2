"""Tests for layered config loading, Pydantic validation, and ConfigStore lookups."""

import json
import textwrap
from pathlib import Path

import pytest

from decker.config import (
    ConfigStore,
    DeckerConfig,
    HttpRequestAction,
    LaunchAppAction,
    PageSwitchAction,
    ScriptAction,
    UnknownAction,
    dump_config,
    find_config_file,
    load_config,
    read_layer,
    save_config,
)
from decker.errors import ConfigLoadError, ConfigValidationError, DeviceNotFound, PageNotFound

EXAMPLE_CONFIG = Path(__file__).parent.parent / "config" / "default.json"
EXAMPLE_DEVICE = "CL12345678"


@pytest.fixture
def basic_yaml(tmp_path: Path) -> Path:
    config = tmp_path / "decker.yaml"
    config.write_text(textwrap.dedent("""\
        devices:
          DECK1:
            name: "Test Deck"
            pages:
              default:
                buttons:
                  "0":
                    type: launch_app
                    path: /path/to/app
                    text: App
                  "1":
                    type: page_switch
                    target_page: page2
                    text: Next
                  "2":
                    type: rotate_brightness
                    step: 10
              page2:
                buttons:
                  "0":
                    type: page_switch
                    target_page: default
                    text: Back
    """))
    return config


@pytest.fixture
def store(basic_yaml: Path) -> ConfigStore:
    return ConfigStore(load_config(basic_yaml))


class TestLoadConfig:
    def test_load_example_config(self):
        cfg = load_config(EXAMPLE_CONFIG)
        assert cfg.global_settings.log_level == "info"
        button = ConfigStore(cfg).get_button(EXAMPLE_DEVICE, "default", 0)
        assert isinstance(button, LaunchAppAction)
        assert button.path == "/Applications/Calculator.app"

    def test_button_variants(self, basic_yaml: Path):
        cfg = load_config(basic_yaml)
        buttons = cfg.devices["DECK1"].pages["default"].buttons
        assert isinstance(buttons[0], LaunchAppAction)
        assert isinstance(buttons[1], PageSwitchAction)
        assert buttons[1].target_page == "page2"
        assert isinstance(buttons[2], UnknownAction)
        assert buttons[2].type == "rotate_brightness"
        assert buttons[2].model_extra == {"step": 10}

    def test_script_button(self):
        cfg = ConfigStore().load([{"devices": {"D": {"pages": {"default": {"buttons": {
            "0": {"type": "script", "script": "/usr/local/bin/backup.sh", "args": ["--quick"],
                  "cwd": "/tmp", "timeout": 5},
        }}}}}}])
        button = cfg.devices["D"].pages["default"].buttons[0]
        assert isinstance(button, ScriptAction)
        assert button.args == ["--quick"]
        assert button.timeout == 5.0

    def test_dials_and_button_state_kept(self):
        cfg = ConfigStore().load([{"devices": {"D": {"pages": {"default": {
            "buttons": {"0": {"type": "launch_app", "path": "/usr/bin/true", "stateful": True,
                              "state_images": {"on": "on.png", "off": "off.png"}}},
            "dials": {"0": {"type": "volume", "text": "Vol", "step": 5}},
        }}}}}])
        page = cfg.devices["D"].pages["default"]
        assert page.buttons[0].stateful is True
        assert page.buttons[0].state_images == {"on": "on.png", "off": "off.png"}
        assert page.dials["0"].type == "volume"
        assert page.dials["0"].model_extra == {"step": 5}

    def test_button_keys_become_ints(self, basic_yaml: Path):
        cfg = load_config(basic_yaml)
        assert set(cfg.devices["DECK1"].pages["default"].buttons) == {0, 1, 2}

    def test_defaults_when_no_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("DECKER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        cfg = load_config()
        assert cfg.devices == {}
        assert cfg.global_settings.log_level == "info"

    def test_config_path_from_env(self, basic_yaml: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("DECKER_CONFIG", str(basic_yaml))
        assert find_config_file() == basic_yaml
        cfg = load_config()
        assert "DECK1" in cfg.devices

    def test_finds_file_in_working_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("DECKER_CONFIG", raising=False)
        monkeypatch.chdir(tmp_path)
        (tmp_path / "decker.json").write_text(json.dumps({"devices": {}, "version": "2.0"}))
        assert find_config_file() == tmp_path / "decker.json"
        assert load_config().version == "2.0"

    def test_override_layers(self, basic_yaml: Path, tmp_path: Path):
        override = tmp_path / "local.json"
        override.write_text(json.dumps({
            "global_settings": {"log_level": "debug"},
            "devices": {"DECK1": {"name": "Renamed", "pages": {"page3": {"buttons": {}}}}},
        }))
        cfg = load_config(basic_yaml, overrides=[override])
        device = cfg.devices["DECK1"]
        assert cfg.global_settings.log_level == "debug"
        assert device.name == "Renamed"
        assert set(device.pages) == {"default", "page2", "page3"}
        assert device.pages["default"].buttons[0].path == "/path/to/app"


class TestEnvVars:
    def test_env_var_resolution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("HA_TOKEN", "secret")
        config = tmp_path / "decker.yaml"
        config.write_text(textwrap.dedent("""\
            devices:
              DECK1:
                pages:
                  default:
                    buttons:
                      "0":
                        type: http
                        url: http://ha.local/api
                        headers:
                          Authorization: "Bearer ${HA_TOKEN}"
        """))
        cfg = load_config(config)
        button = cfg.devices["DECK1"].pages["default"].buttons[0]
        assert isinstance(button, HttpRequestAction)
        assert button.headers == {"Authorization": "Bearer secret"}
        assert button.method == "GET"

    def test_missing_env_var_raises(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("NONEXISTENT_VAR", raising=False)
        config = tmp_path / "decker.yaml"
        config.write_text('version: "${NONEXISTENT_VAR}"\n')
        with pytest.raises(ConfigLoadError, match="NONEXISTENT_VAR is not set"):
            load_config(config)


class TestLoadErrors:
    def test_missing_config_file_raises(self):
        with pytest.raises(ConfigLoadError, match="not found"):
            load_config("/nonexistent/path/decker.json")

    def test_unparseable_file_raises(self, tmp_path: Path):
        config = tmp_path / "decker.json"
        config.write_text('{"devices": {')
        with pytest.raises(ConfigLoadError):
            read_layer(config)

    def test_non_utf8_file_raises(self, tmp_path: Path):
        config = tmp_path / "decker.json"
        config.write_bytes(b'{"devices": {"\xff\xfe": {}}}')
        with pytest.raises(ConfigLoadError, match="UTF-8"):
            read_layer(config)

    def test_over_nested_layer_raises(self):
        nested: dict = {}
        for _ in range(80):
            nested = {"inner": nested}
        with pytest.raises(ConfigLoadError, match="nested deeper"):
            ConfigStore().load([{"global_settings": nested}])

    def test_non_mapping_root_raises(self, tmp_path: Path):
        config = tmp_path / "decker.yaml"
        config.write_text("- just\n- a list\n")
        with pytest.raises(ConfigLoadError, match="mapping"):
            read_layer(config)

    def test_empty_launch_path_raises(self):
        layer = {"devices": {"D": {"pages": {"default": {"buttons": {
            "0": {"type": "launch_app", "path": ""},
        }}}}}}
        with pytest.raises(ConfigLoadError):
            ConfigStore().load([layer])

    def test_blank_launch_path_raises(self):
        layer = {"devices": {"D": {"pages": {"default": {"buttons": {
            "0": {"type": "launch_app", "path": "   "},
        }}}}}}
        with pytest.raises(ConfigLoadError):
            ConfigStore().load([layer])

    def test_negative_button_key_raises(self):
        layer = {"devices": {"D": {"pages": {"default": {"buttons": {
            "-1": {"type": "page_switch", "target_page": "default"},
        }}}}}}
        with pytest.raises(ConfigLoadError):
            ConfigStore().load([layer])

    def test_non_numeric_button_key_raises(self):
        layer = {"devices": {"D": {"pages": {"default": {"buttons": {
            "first": {"type": "page_switch", "target_page": "default"},
        }}}}}}
        with pytest.raises(ConfigLoadError):
            ConfigStore().load([layer])

    def test_invalid_color_raises(self):
        layer = {"devices": {"D": {"pages": {"default": {"buttons": {
            "0": {"type": "page_switch", "target_page": "default", "color": "red"},
        }}}}}}
        with pytest.raises(ConfigLoadError):
            ConfigStore().load([layer])

    def test_default_page_must_exist(self):
        layer = {"devices": {"D": {"default_page": "home", "pages": {"default": {"buttons": {}}}}}}
        with pytest.raises(ConfigLoadError, match="home"):
            ConfigStore().load([layer])

    def test_missing_page_switch_target_loads_fine(self):
        layer = {"devices": {"D": {"pages": {"default": {"buttons": {
            "0": {"type": "page_switch", "target_page": "nowhere"},
        }}}}}}
        cfg = ConfigStore().load([layer])
        assert cfg.devices["D"].pages["default"].buttons[0].target_page == "nowhere"


class TestConfigStore:
    def test_get_device(self, store: ConfigStore):
        assert store.get_device("DECK1").name == "Test Deck"
        assert store.device_ids() == ["DECK1"]

    def test_unknown_device_raises(self, store: ConfigStore):
        with pytest.raises(DeviceNotFound):
            store.get_device("NOPE")

    def test_get_page(self, store: ConfigStore):
        assert 0 in store.get_page("DECK1", "page2").buttons

    def test_unknown_page_raises(self, store: ConfigStore):
        with pytest.raises(PageNotFound) as exc_info:
            store.get_page("DECK1", "missing")
        assert isinstance(exc_info.value, ConfigValidationError)
        assert exc_info.value.page_id == "missing"

    def test_unassigned_button_is_none(self, store: ConfigStore):
        assert store.get_button("DECK1", "default", 14) is None

    def test_button_on_missing_page_raises(self, store: ConfigStore):
        with pytest.raises(PageNotFound):
            store.get_button("DECK1", "missing", 0)

    def test_default_page_falls_back_to_default(self, store: ConfigStore):
        assert store.default_page("DECK1") == "default"

    def test_configured_default_page(self):
        store = ConfigStore()
        store.load([{"devices": {"D": {"default_page": "home", "pages": {"home": {"buttons": {}}}}}}])
        assert store.default_page("D") == "home"

    def test_config_is_frozen(self, store: ConfigStore):
        with pytest.raises(Exception):
            store.config.version = "9"
        with pytest.raises(Exception):
            store.get_device("DECK1").name = "changed"

    def test_lookups_hand_out_copies(self):
        store = ConfigStore()
        store.load([{"devices": {"D": {"pages": {"default": {"buttons": {
            "0": {"type": "launch_app", "path": "/usr/bin/true"},
        }}}}}}])
        button = store.get_button("D", "default", 0)
        button.args.append("--evil")
        button.env["EVIL"] = "1"
        store.get_page("D", "default").buttons.clear()
        store.get_device("D").pages.clear()
        store.config.devices.clear()
        fresh = store.get_button("D", "default", 0)
        assert fresh.args == []
        assert fresh.env == {}

    def test_load_does_not_alias_layers(self):
        layer = {"devices": {"D": {"name": "a", "pages": {}}}}
        store = ConfigStore()
        store.load([layer])
        layer["devices"]["D"]["name"] = "b"
        assert store.get_device("D").name == "a"


class TestRoundTrip:
    def test_json_round_trip(self, basic_yaml: Path):
        cfg = load_config(basic_yaml)
        text = json.dumps(dump_config(cfg))
        assert DeckerConfig.model_validate(json.loads(text)) == cfg

    def test_example_round_trip(self):
        cfg = load_config(EXAMPLE_CONFIG)
        assert DeckerConfig.model_validate(json.loads(json.dumps(dump_config(cfg)))) == cfg

    def test_dials_and_button_state_round_trip(self):
        cfg = ConfigStore().load([{"devices": {"D": {"pages": {"default": {
            "buttons": {"0": {"type": "launch_app", "path": "/usr/bin/true", "stateful": True,
                              "state_images": {"on": "on.png"}}},
            "dials": {"0": {"type": "volume", "step": 5}},
        }}}}}])
        data = json.loads(json.dumps(dump_config(cfg)))
        page = data["devices"]["D"]["pages"]["default"]
        assert page["dials"] == {"0": {"type": "volume", "step": 5}}
        assert page["buttons"]["0"]["stateful"] is True
        assert DeckerConfig.model_validate(data) == cfg

    @pytest.mark.parametrize("filename", ["saved.json", "saved.yaml"])
    def test_save_and_reload(self, basic_yaml: Path, tmp_path: Path, filename: str):
        cfg = load_config(basic_yaml)
        path = tmp_path / filename
        save_config(cfg, path)
        assert load_config(path) == cfg
