from __future__ import annotations

import asyncio
import io
import sys
from pathlib import Path

import pytest

from notesbridge.bridge import cli
from notesbridge.bridge.cli import build_argv, build_parser, run_cli
from notesbridge.bridge.runtimes import PythonRuntime

from conftest import RecordingRuntime


def test_argv_starts_with_program_name() -> None:
    assert build_argv("script.php", ["--flag", "value"], "php") == ["php", "script.php", "--flag", "value"]
    assert build_argv("tool.py", [], "python") == ["python", "tool.py"]


def test_parser_keeps_script_options_for_the_script() -> None:
    options = build_parser().parse_args(["tool.py", "--verbose", "-n", "3"])
    assert options.script == "tool.py"
    assert options.args == ["--verbose", "-n", "3"]


def test_run_cli_relays_streams_and_exit_code(tmp_path: Path) -> None:
    runtime = RecordingRuntime(exit_code=5)
    stdout, stderr = io.BytesIO(), io.BytesIO()

    code = asyncio.run(run_cli(
        ["python", "script.php", "--flag", "value"], runtime=runtime, cwd=str(tmp_path), stdout=stdout, stderr=stderr,
    ))

    assert code == 5
    assert runtime.argv == ["python", "script.php", "--flag", "value"]
    assert stdout.getvalue() == b"hello world\n"
    assert stderr.getvalue() == b"warning\n"


def test_main_exits_with_script_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    runtime = RecordingRuntime(exit_code=7)
    monkeypatch.setattr(cli, "create_runtime", lambda *args, **kwargs: runtime)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "stdout", io.TextIOWrapper(io.BytesIO()))
    monkeypatch.setattr(sys, "stderr", io.TextIOWrapper(io.BytesIO()))

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["job.py", "a", "b"])

    assert excinfo.value.code == 7
    assert runtime.argv[1:] == ["job.py", "a", "b"]


def test_main_exits_1_when_the_runtime_cannot_start(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(*args, **kwargs):
        raise RuntimeError("no runtime")

    monkeypatch.setattr(cli, "create_runtime", broken)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["job.py"])
    assert excinfo.value.code == 1


def test_real_interpreter_sees_arguments_and_working_directory(tmp_path: Path) -> None:
    (tmp_path / "data.txt").write_text("payload")
    (tmp_path / "tool.py").write_text(
        "import sys\n"
        "print(sys.argv[1:])\n"
        "print(open('data.txt').read())\n"
        "print('oops', file=sys.stderr)\n"
        "sys.exit(3)\n"
    )
    stdout, stderr = io.BytesIO(), io.BytesIO()

    code = asyncio.run(run_cli(
        build_argv("tool.py", ["--name", "x y"], "python"),
        runtime=PythonRuntime(),
        cwd=str(tmp_path),
        stdout=stdout,
        stderr=stderr,
    ))

    assert code == 3
    assert stdout.getvalue().decode().splitlines() == ["['--name', 'x y']", "payload"]
    assert stderr.getvalue().strip() == b"oops"
