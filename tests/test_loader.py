import logging
from pathlib import Path

import pytest

from dialogscript.core.config import EngineConfig
from dialogscript.loader import LoadReport, ScriptLoader
from dialogscript.runtime.context import DialogueContext
from dialogscript.runtime.errors import (
    DuplicateNodeError,
    ScriptSyntaxError,
    UnterminatedStringError,
)


@pytest.fixture
def loader(context):
    return ScriptLoader(context)


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_load_string(loader, context):
    report = loader.load_string(":: a\nA: hi\n:: b\nB: yo\n", "inline")

    assert report.ok
    assert report.loaded == ["inline"]
    assert report.nodes == ["a", "b"]
    assert context.node_names == ["a", "b"]


def test_load_string_failure_registers_nothing(loader, context, caplog):
    with caplog.at_level(logging.ERROR):
        report = loader.load_string(":: a\nA: hi\nelse\n", "broken")

    assert not report.ok
    (failure,) = report.failures
    assert failure.origin == "broken"
    assert isinstance(failure.error, ScriptSyntaxError)
    assert "line 3" in failure.message
    assert context.node_names == []
    assert "Failed to load broken" in caplog.text


def test_lex_errors_are_reported(loader):
    report = loader.load_string(':: a\nvar $s "open\n')
    assert isinstance(report.failures[0].error, UnterminatedStringError)


def test_load_directory(tmp_path, loader, context):
    write(tmp_path / "a_intro.txt", ":: intro\nA: hello\n")
    write(tmp_path / "nested" / "b_shop.mds", ":: shop\nB: buy\n")
    write(tmp_path / "c_broken.txt", ":: broken\nif true\n")
    write(tmp_path / "notes.md", ":: ignored\nC: no\n")

    report = loader.load_directory(tmp_path)

    assert [Path(path).name for path in report.loaded] == ["a_intro.txt", "b_shop.mds"]
    assert report.nodes == ["intro", "shop"]
    assert len(report.failures) == 1
    assert report.failures[0].origin.endswith("c_broken.txt")
    assert sorted(context.node_names) == ["intro", "shop"]


def test_load_directory_extension_setting(tmp_path, context):
    write(tmp_path / "one.dlg", ":: one\nA: x\n")
    write(tmp_path / "two.txt", ":: two\nA: y\n")
    loader = ScriptLoader(context, EngineConfig(script_extensions=["DLG"]))

    report = loader.load_directory(tmp_path)

    assert report.nodes == ["one"]


def test_missing_directory(tmp_path, loader, caplog):
    with caplog.at_level(logging.WARNING):
        report = loader.load_directory(tmp_path / "absent")
    assert report.ok
    assert report.loaded == []
    assert "not found" in caplog.text


def test_unreadable_files(tmp_path, loader):
    missing = loader.load_file(tmp_path / "missing.txt")
    assert isinstance(missing.failures[0].error, OSError)

    binary = tmp_path / "binary.txt"
    binary.write_bytes(b"\xff\xfe\x00bad")
    report = loader.load_file(binary)
    assert isinstance(report.failures[0].error, UnicodeDecodeError)


def test_duplicate_nodes_without_overrides(tmp_path):
    context = DialogueContext(EngineConfig(allow_node_overrides=False))
    loader = ScriptLoader(context)
    write(tmp_path / "a.txt", ":: start\nA: first\n")
    write(tmp_path / "b.txt", ":: other\nB: x\n:: start\nA: second\n")

    report = loader.load_directory(tmp_path)

    assert report.nodes == ["start"]
    assert isinstance(report.failures[0].error, DuplicateNodeError)
    assert context.node_names == ["start"]
    assert context.get_node("start").content[0].text[0].text == "first"


def test_later_definition_wins_with_overrides(loader, context):
    loader.load_string(":: start\nA: first\n", "one")
    loader.load_string(":: start\nA: second\n", "two")
    assert context.get_node("start").content[0].text[0].text == "second"


def test_report_merge():
    first = LoadReport(loaded=["a"], nodes=["x"])
    second = LoadReport(loaded=["b"], nodes=["y", "z"])
    first.merge(second)
    assert first.loaded == ["a", "b"]
    assert first.nodes == ["x", "y", "z"]
    assert first.ok
