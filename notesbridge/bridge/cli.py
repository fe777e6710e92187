"""
Terminal pass-through: run one script inside a sandbox from the shell.

    notesbridge-cli script.py [args...]

The host's current working directory is mounted at the same path inside the
sandbox and becomes the sandbox's working directory. The script's stdout and
stderr are relayed chunk by chunk while it runs, and its exit code becomes
this process's exit code, so CI jobs and shell scripts see failures.
"""

import argparse
import asyncio
import logging
import os
import sys

from notesbridge.bridge.runtimes import create_runtime
from notesbridge.bridge.sandbox import Sandbox
from notesbridge.bridge.streams import pump
from notesbridge.database.config.config import settings
from notesbridge.log import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="notesbridge-cli",
        description="Execute a script inside the sandboxed runtime.",
    )
    parser.add_argument("script", help="Script to execute, relative to the current directory.")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Arguments passed to the script.")
    return parser


def build_argv(script: str, args: list[str], program_name: str = settings.PROGRAM_NAME) -> list[str]:
    # argv[0] is the program name: without it the runtime takes the script
    # for the program and every argument shifts by one.
    return [program_name, script, *args]


async def run_cli(argv: list[str], runtime=None, cwd: str | None = None,
                  stdout=None, stderr=None) -> int:
    """
    Run `argv` in a fresh sandbox and relay its output.

    Args:
        argv: Full argument vector, program name first.
        runtime: Runtime to use; built from settings when omitted.
        cwd: Host directory to mount and work in (default: current directory).
        stdout: Binary sink for the script's stdout (default: ``sys.stdout.buffer``).
        stderr: Binary sink for the script's stderr (default: ``sys.stderr.buffer``).

    Returns:
        int: The script's exit code.
    """
    if runtime is None:
        runtime = create_runtime(
            settings.RUNTIME,
            program_name=settings.PROGRAM_NAME,
            module_path=settings.RUNTIME_WASM,
            script_extensions=tuple(settings.SCRIPT_EXTENSIONS),
        )
    cwd = os.path.abspath(cwd or os.getcwd())
    sandbox = Sandbox(runtime)
    sandbox.mount(cwd, cwd)
    sandbox.chdir(cwd)

    logger.debug("Running in sandbox: %s", " ".join(argv))
    process = await sandbox.cli(argv)
    await asyncio.gather(
        pump(process.stdout, stdout or sys.stdout.buffer),
        pump(process.stderr, stderr or sys.stderr.buffer),
    )
    return await process.exit_code


def main(arguments: list[str] | None = None) -> None:
    options = build_parser().parse_args(arguments)
    configure_logging()
    try:
        code = asyncio.run(run_cli(build_argv(options.script, options.args)))
    except Exception:
        logger.exception("Critical error in the CLI wrapper")
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
