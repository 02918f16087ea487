"""
Tests for the todostore command line.
"""

import pytest

from todostore.__main__ import build_parser, format_todo, main
from todostore.driver import Driver
from todostore.models.todo import Todo


@pytest.fixture
def run(store_path, monkeypatch):
    monkeypatch.delenv("TODOSTORE_PATH", raising=False)

    def invoke(*args):
        return main(["--path", store_path, *args])

    return invoke


class TestCli:
    """Tests for the add/list/toggle/remove commands."""

    def test_format_todo(self):
        assert format_todo(Todo(id=3, title="a")) == "[ ] 3: a"
        assert format_todo(Todo(id=3, title="a", completed=True)) == "[x] 3: a"

    def test_parser_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_add_and_list(self, run, capsys):
        assert run("add", "first") == 0
        assert run("add", "second") == 0
        capsys.readouterr()

        assert run("list") == 0
        assert capsys.readouterr().out.splitlines() == ["[ ] 0: first", "[ ] 1: second"]

    def test_toggle(self, run, capsys):
        run("add", "first")
        capsys.readouterr()

        assert run("toggle", "0") == 0
        assert capsys.readouterr().out.strip() == "[x] 0: first"

    def test_remove(self, run, capsys):
        run("add", "first")
        assert run("remove", "0") == 0
        capsys.readouterr()

        run("list")
        assert capsys.readouterr().out == ""

    def test_toggle_missing(self, run, capsys):
        assert run("toggle", "5") == 1
        assert "Todo 5 not found" in capsys.readouterr().err

    def test_blank_title(self, run, capsys):
        assert run("add", "   ") == 2
        assert "title cannot be empty" in capsys.readouterr().err

    def test_locked_store(self, run, store_path, capsys):
        with Driver.open(store_path):
            assert run("list") == 1
        assert "internal storage error" in capsys.readouterr().err
