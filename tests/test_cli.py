# tests/test_cli.py
"""
Tests for the ``hangcheck`` command line.
"""

import json

import pytest

from hangcheck.config import SubstringHeuristic
from hangcheck.formatting import CONDITIONS_HEADER, GLOBAL_EXIT, NEVER_EXITS
from hangcheck.main import (
    EXIT_ERROR,
    EXIT_INFRA,
    EXIT_OK,
    FILE_SEPARATOR,
    _build_parser,
    _config_from_args,
    main,
    may_hang,
)
from hangcheck.report import AnalysisReport, Deficiency, VerdictSet
from tests.conftest import GLOBAL_EXIT as GLOBAL_EXIT_SOURCE
from tests.conftest import IF_ELSE_BOTH_EXIT, IF_ELSE_MISSING_EXIT, NO_EXIT


@pytest.fixture
def script(tmp_path):
    def write(name, code):
        path = tmp_path / name
        path.write_text(code, encoding="utf-8")
        return str(path)
    return write


class TestMain:

    def test_global_exit(self, script, capsys):
        assert main([script("ok.js", GLOBAL_EXIT_SOURCE)]) == EXIT_OK
        assert capsys.readouterr().out == GLOBAL_EXIT + "\n"

    def test_all_branches_exit(self, script):
        assert main([script("ok.js", IF_ELSE_BOTH_EXIT)]) == EXIT_OK

    def test_missing_exit(self, script, capsys):
        assert main([script("bad.js", IF_ELSE_MISSING_EXIT)]) == EXIT_ERROR
        out = capsys.readouterr().out
        assert out.startswith(CONDITIONS_HEADER)
        assert "  - if a is false\n" in out

    def test_never_exits(self, script, capsys):
        assert main([script("idle.js", NO_EXIT)]) == EXIT_ERROR
        assert capsys.readouterr().out == NEVER_EXITS + "\n"

    def test_files_separated(self, script, capsys):
        files = [script("a.js", GLOBAL_EXIT_SOURCE), script("b.js", NO_EXIT)]
        assert main(files) == EXIT_ERROR
        assert capsys.readouterr().out.splitlines() == [GLOBAL_EXIT, FILE_SEPARATOR, NEVER_EXITS]

    def test_json(self, script, capsys):
        path = script("bad.js", IF_ELSE_MISSING_EXIT)
        main(["--json", path])
        payload = json.loads(capsys.readouterr().out)
        assert payload["file"] == path
        assert payload["global_exit"] is False
        assert payload["conditionals"]["need_exits"] == [
            {"line": 3, "message": "Code does not exit if a is false."},
        ]

    def test_json_zero_index(self, script, capsys):
        main(["--json", "--zero-index", script("bad.js", IF_ELSE_MISSING_EXIT)])
        payload = json.loads(capsys.readouterr().out)
        assert payload["conditionals"]["need_exits"][0]["line"] == 2

    def test_json_one_line_per_file(self, script, capsys):
        main(["--json", script("a.js", NO_EXIT), script("b.js", GLOBAL_EXIT_SOURCE)])
        lines = capsys.readouterr().out.splitlines()
        assert [json.loads(line)["global_exit"] for line in lines] == [False, True]

    def test_exit_name(self, script):
        path = script("proc.js", "process.exit(0);\n")
        assert main([path]) == EXIT_ERROR
        assert main(["--exit-name", "process.exit", path]) == EXIT_OK

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "absent.js")]) == EXIT_INFRA
        assert "HC-0002" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as info:
            main(["--version"])
        assert info.value.code == 0
        assert capsys.readouterr().out.startswith("hangcheck ")


class TestConfigFromArgs:

    def test_defaults(self):
        config = _config_from_args(_build_parser().parse_args(["a.js"]))
        assert config.terminators == ("exit",)
        assert config.promise_modules == ("q",)
        assert config.max_callback_depth == 32

    def test_options(self):
        args = _build_parser().parse_args([
            "--exit-name", "exit", "--exit-name", "die",
            "--promise-module", "bluebird",
            "--error-pattern", "fail",
            "--max-depth", "4",
            "a.js",
        ])
        config = _config_from_args(args)
        assert config.terminators == ("exit", "die")
        assert config.promise_modules == ("bluebird",)
        assert config.error_names == SubstringHeuristic("fail")
        assert config.max_callback_depth == 4


class TestMayHang:

    def test_global_exit(self):
        assert not may_hang(AnalysisReport(global_exit=True))

    def test_nothing_exits(self):
        assert may_hang(AnalysisReport())

    def test_every_path_exits(self):
        assert not may_hang(AnalysisReport(callbacks=VerdictSet(always_exits=True, never_exits=False)))

    def test_missing_exit(self):
        partial = VerdictSet(need_exits=(Deficiency(3, "m"),), never_exits=False)
        assert may_hang(AnalysisReport(promises=partial))
