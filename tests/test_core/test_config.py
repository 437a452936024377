import json

import pytest
from pydantic import ValidationError

from dialogscript.core.config import EngineConfig


def test_defaults():
    config = EngineConfig()
    assert config.default_start_node == "start"
    assert config.script_extensions == (".txt", ".mds")
    assert config.strict_interpolation is False
    assert config.auto_advance_to_choices is True
    assert config.max_steps == 10_000
    assert config.register_builtins is True
    assert config.allow_node_overrides is True


def test_extensions_are_normalized():
    config = EngineConfig(script_extensions=("TXT", ".Dlg"))
    assert config.script_extensions == (".txt", ".dlg")


def test_unknown_field_rejected():
    with pytest.raises(ValidationError):
        EngineConfig(start_node="intro")


def test_max_steps_must_be_positive():
    with pytest.raises(ValidationError):
        EngineConfig(max_steps=0)


def test_assignment_is_validated():
    config = EngineConfig()
    with pytest.raises(ValidationError):
        config.max_steps = -5


def test_from_file(tmp_path):
    path = tmp_path / "dialogue.config.json"
    path.write_text(json.dumps({
        "default_start_node": "intro",
        "strict_interpolation": True,
    }), encoding="utf-8")

    config = EngineConfig.from_file(path)

    assert config.default_start_node == "intro"
    assert config.strict_interpolation is True
    assert config.max_steps == 10_000
