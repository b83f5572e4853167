from pathlib import Path

import pytest

from kismetdata.config import loader
from kismetdata.config.loader import load_config
from kismetdata.errors import ConfigurationError


def test_defaults_when_default_file_absent(tmp_path, monkeypatch):
    monkeypatch.setattr(loader, "DEFAULT_CONFIG_PATH", tmp_path / "kismetdata.config.yaml")

    config = load_config()

    assert config.rest.page_size == 500
    assert config.rest.device_view == "all"
    assert config.snapshot.latitude_columns == ["avg_lat", "lat"]


def test_explicit_missing_path_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_partial_sections_merge_with_defaults(tmp_path):
    cfg = tmp_path / "kismetdata.config.yaml"
    cfg.write_text("rest:\n  page_size: 50\nsnapshot:\n")

    config = load_config(cfg)

    assert config.rest.page_size == 50
    assert config.rest.timeout_seconds == 20
    assert config.snapshot.identifier_columns == ["devmac", "sourcemac", "macaddr"]


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "rest: 12\n",
        "rest:\n  page_size: 0\n",
        "rest:\n  page_size: [\n",
    ],
)
def test_invalid_config_raises_configuration_error(tmp_path, content):
    cfg = tmp_path / "bad.yaml"
    cfg.write_text(content)

    with pytest.raises(ConfigurationError):
        load_config(cfg)


def test_example_config_is_valid():
    example = Path(__file__).resolve().parent.parent / "kismetdata.config.example.yaml"

    config = load_config(example)

    assert config.rest.user_agent == "kismetdata/0.1"
