import logging
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from rich.markup import escape

from .console import console

logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 127


@dataclass(frozen=True)
class CommandResult:
    argv: list
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def describe(self):
        """Short failure text suitable for an error notice."""
        detail = f"exit code {self.returncode}: {format_argv(self.argv)}"
        tail = (self.stderr or self.stdout).strip()
        if tail:
            detail += f"\n{tail.splitlines()[-1]}"
        return detail


def format_argv(argv):
    return ' '.join(shlex.quote(str(arg)) for arg in argv)


def run_command(
    argv: Sequence[str],
    description: str = "Running command",
    env: Optional[Mapping[str, str]] = None,
    input_text: Optional[str] = None,
    capture_output: bool = True,
    cwd=None,
) -> CommandResult:
    """
    Runs a command and logs its details. Never raises on a non-zero exit:
    the caller decides what a failure means. A missing executable is
    reported as return code 127.

    Use capture_output=False for commands that talk to the terminal
    (password prompts, passphrase prompts).
    """
    argv = [str(arg) for arg in argv]
    cmd_str_display = format_argv(argv)
    logger.info(f"Executing: {cmd_str_display}")
    console.log(f"{description}: [dim]{escape(cmd_str_display)}[/dim]")

    full_env = os.environ.copy()
    if env:
        full_env.update(env)

    try:
        completed = subprocess.run(
            argv,
            input=input_text,
            capture_output=capture_output,
            text=True,
            cwd=cwd,
            env=full_env,
        )
    except FileNotFoundError:
        logger.error(f"Command executable not found: '{argv[0]}' for command: {cmd_str_display}")
        return CommandResult(argv=argv, returncode=COMMAND_NOT_FOUND, stderr=f"{argv[0]}: command not found")

    result = CommandResult(
        argv=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )
    logger.debug(f"Return Code: {result.returncode}")
    if result.stdout: logger.debug(f"Stdout:\n{result.stdout.strip()}")
    if result.stderr: logger.debug(f"Stderr:\n{result.stderr.strip()}")

    if not result.ok:
        logger.warning(f"Command failed with return code {result.returncode}: {cmd_str_display}")
    return result


def run_shell(script, description="Running shell script", env=None, capture_output=True, runner=None):
    """Runs a bash snippet, for installers that are piped from curl."""
    runner = runner or run_command
    return runner(["/bin/bash", "-c", f"set -o pipefail; {script}"], description=description, env=env, capture_output=capture_output)


def which(name, extra_dirs=()):
    """Like shutil.which, but searches extra_dirs ahead of PATH."""
    search = [str(d) for d in extra_dirs]
    search.append(os.environ.get("PATH", os.defpath))
    return shutil.which(name, path=os.pathsep.join(search))
