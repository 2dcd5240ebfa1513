"""External command execution."""

from __future__ import annotations

import logging
import subprocess
from typing import Optional

from deployer.error_wrapper import wrap_process_error

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Runs shell commands and returns their standard output.

    Terraform flags carry shell quoting (``-var="key=value"``), so commands are
    passed to the shell as a single string.
    """

    def run(self, command: str, cwd: Optional[str] = None, ignore_error: bool = False) -> str:
        """Run ``command`` and return its stdout.

        Args:
            command: Full command line
            cwd: Working directory
            ignore_error: Log a failure as a warning and return an empty string
                instead of raising

        Raises:
            ProcessError: the command exited with a non-zero status
        """
        logger.debug("Running command '%s' in %s", command, cwd or ".")
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as exc:
            error = wrap_process_error(exc, cwd=cwd)
            if ignore_error:
                logger.warning("Ignoring failed command: %s", error.message)
                return ""
            logger.error("Command '%s' failed with exit status %s", command, exc.returncode)
            raise error from exc

        logger.debug("Finished command '%s'", command)
        return result.stdout
