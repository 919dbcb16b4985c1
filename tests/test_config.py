from __future__ import annotations

import json

import pytest

from mkch_client.config import AppConfig, CacheTTLConfig, load_config


def test_defaults_match_ttl_table() -> None:
    config = AppConfig()

    assert config.cache.ttl == CacheTTLConfig(
        boards=600, threads=300, thread_detail=180, comments=180
    )
    assert config.cache.sweep_interval_seconds == 300
    assert config.api.resolved_api_url == "https://mkch.pooziqo.xyz/api"


def test_load_json_config(tmp_path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "api": {"base_url": "https://mkch.test/", "timeout_seconds": 5},
                "cache": {"directory": str(tmp_path / "cache"), "ttl": {"boards": 60}},
                "network": {"probe_enabled": False},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.api.base_url == "https://mkch.test"
    assert config.cache.ttl.boards == 60
    assert config.cache.ttl.threads == 300
    assert not config.network.probe_enabled


def test_load_yaml_config(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "cache:\n  sweep_interval_seconds: 30\nsettings_path: custom/settings.json\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.cache.sweep_interval_seconds == 30
    assert config.settings_path == "custom/settings.json"


def test_empty_config_file_uses_defaults(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == AppConfig()


@pytest.mark.parametrize(
    "content",
    [
        '{"cache": {"ttl": {"boards": -1}}}',
        '{"unknown": true}',
        '{"api": {"base_url": "ftp://mkch.test"}}',
        "- just\n- a list\n",
    ],
)
def test_invalid_config_raises_value_error(tmp_path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(path)
