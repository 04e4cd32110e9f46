import json

import pytest
import toml

from hazard_map.config import PositionOptions, Settings, load_settings, main, write_secrets
from hazard_map.errors import ConfigError
from hazard_map.models import DEFAULT_REGION


def test_defaults_when_file_missing(tmp_path):
    settings = load_settings(str(tmp_path / "missing.toml"))
    assert settings == Settings()
    assert settings.collection == "events"
    assert settings.default_region == DEFAULT_REGION
    assert settings.position == PositionOptions(True, 15.0, 10.0)


def test_settings_from_secrets_file(tmp_path):
    path = tmp_path / "secrets.toml"
    path.write_text(toml.dumps({
        "serviceAccount": {"type": "service_account", "project_id": "demo"},
        "hazard_map": {
            "collection": "hazards",
            "platform": "android",
            "position_timeout": 5,
            "prompt_timeout": 30,
            "refresh_interval_ms": 3000,
            "log_level": "debug",
            "default_region": {"latitude": -23.5, "longitude": -46.6},
        },
    }))
    settings = load_settings(str(path))
    assert settings.collection == "hazards"
    assert settings.platform == "android"
    assert settings.position.timeout == 5.0
    assert settings.position.prompt_timeout == 30.0
    assert settings.refresh_interval_ms == 3000
    assert settings.log_level == "DEBUG"
    assert settings.service_account["project_id"] == "demo"
    assert (settings.default_region.latitude, settings.default_region.longitude) == (-23.5, -46.6)
    assert settings.default_region.longitude_delta == DEFAULT_REGION.longitude_delta


@pytest.mark.parametrize("section", [
    {"position_timeout": 0},
    {"position_timeout": "soon"},
    {"prompt_timeout": 0},
    {"refresh_interval_ms": -1},
    {"collection": "a/b"},
    {"default_region": {"latitude": "north"}},
])
def test_invalid_settings_raise(section):
    with pytest.raises(ConfigError):
        Settings.from_mapping({"hazard_map": section})


def test_unreadable_secrets_file(tmp_path):
    path = tmp_path / "secrets.toml"
    path.write_text("this is = = not toml")
    with pytest.raises(ConfigError):
        load_settings(str(path))


def test_write_secrets_keeps_other_tables(tmp_path):
    account = tmp_path / "serviceAccount.json"
    account.write_text(json.dumps({"type": "service_account", "project_id": "demo"}))
    out = tmp_path / ".streamlit" / "secrets.toml"
    out.parent.mkdir()
    out.write_text(toml.dumps({"hazard_map": {"collection": "hazards"}}))

    assert write_secrets(str(account), str(out)) == str(out)
    data = toml.load(str(out))
    assert data["serviceAccount"]["project_id"] == "demo"
    assert data["hazard_map"]["collection"] == "hazards"


def test_secrets_cli(tmp_path, capsys):
    account = tmp_path / "sa.json"
    account.write_text("{\"project_id\": \"demo\"}")
    out = tmp_path / "nested" / "secrets.toml"
    assert main([str(account), str(out)]) == 0
    assert "wrote" in capsys.readouterr().out
    assert main([]) == 2
    assert main([str(tmp_path / "nope.json"), str(out)]) == 1
