"""Tests for the command-line front-end."""

import json

import pytest

from conftest import echo_metadata
from ishikawa import cli


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    root = tmp_path / "workspace"
    root.mkdir()
    monkeypatch.setenv("ISHIKAWA_ROOT", str(root))
    return root


def test_list_without_tools(workspace, capsys) -> None:
    (workspace / "tools").mkdir()
    assert cli.main(["list"]) == 0
    assert capsys.readouterr().out.strip() == "No tools registered."


def test_list_missing_tools_root_fails(workspace) -> None:
    assert cli.main(["list"]) == 1


def test_register_list_run_show(workspace, tmp_path, capsys) -> None:
    source = tmp_path / "echo.py"
    source.write_text("def execute(value, *rest):\n    return value\n")

    assert cli.main(["register", "echo", str(source), json.dumps(echo_metadata())]) == 0
    assert (workspace / "tools" / "echo" / "dist" / "index.pyc").is_file()
    capsys.readouterr()

    assert cli.main(["list"]) == 0
    assert capsys.readouterr().out.splitlines() == ["- echo"]

    assert cli.main(["run", "echo", "42"]) == 0
    assert capsys.readouterr().out.strip() == "42"

    assert cli.main(["show", "echo"]) == 0
    assert "description: returns input" in capsys.readouterr().out


def test_root_flag_overrides_environment(workspace, tmp_path, capsys) -> None:
    other = tmp_path / "other"
    (other / "tools" / "calc").mkdir(parents=True)

    assert cli.main(["--root", str(other), "list"]) == 0
    assert capsys.readouterr().out.splitlines() == ["- calc"]


def test_run_unknown_tool(workspace) -> None:
    (workspace / "tools").mkdir()
    assert cli.main(["run", "ghost"]) == 1
