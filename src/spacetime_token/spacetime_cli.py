"""Wrapper around the external spacetime CLI.

Only login and logout are driven from here. Both are interactive, so the
child process inherits stdin/stdout/stderr and no output is captured.
"""

import logging
import subprocess

from spacetime_token.errors import ExecutableNotFoundError, SubprocessError

logger = logging.getLogger(__name__)

SPACETIME_COMMAND = "spacetime"


def run_spacetime(args: list[str], command: str = SPACETIME_COMMAND) -> None:
    """Run the spacetime CLI with inherited stdio.

    Args:
        args: Arguments after the executable name
        command: Executable to run (default: spacetime)

    Raises:
        ExecutableNotFoundError: If the executable cannot be launched
        SubprocessError: If it exits with a nonzero status
    """
    cmd = [command, *args]
    display = " ".join(cmd)
    logger.info(f"Running: {display}...")

    try:
        result = subprocess.run(cmd, check=False)
    except FileNotFoundError as e:
        raise ExecutableNotFoundError(
            f"Failed to execute command: {command}. Is '{command}' in your PATH?"
        ) from e
    except OSError as e:
        raise SubprocessError(f"Failed to execute command '{display}': {e}") from e

    if result.returncode != 0:
        raise SubprocessError(
            f"Command '{display}' failed with status: {result.returncode}",
            returncode=result.returncode,
        )

    logger.debug(f"Command '{display}' executed successfully.")


def logout(command: str = SPACETIME_COMMAND) -> None:
    run_spacetime(["logout"], command=command)


def server_issued_login(address: str, command: str = SPACETIME_COMMAND) -> None:
    """Run `spacetime login --server-issued-login <address>`."""
    run_spacetime(["login", "--server-issued-login", address], command=command)


__all__ = ["SPACETIME_COMMAND", "logout", "run_spacetime", "server_issued_login"]
