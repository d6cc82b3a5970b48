"""
Local command execution
"""
import subprocess
from typing import Optional, Sequence

from .exceptions import PreconditionError
from .interfaces import CommandResult, CommandRunner
from .logging import get_logger

logger = get_logger(__name__)

# Exit code reported for a command killed by its timeout (same as coreutils timeout)
TIMEOUT_EXIT_CODE = 124


class LocalRunner(CommandRunner):
    """subprocess-backed runner; never raises on non-zero exit"""

    def run(
        self,
        argv: Sequence[str],
        input: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        logger.debug(f"[run] {' '.join(argv)}")
        try:
            proc = subprocess.run(
                list(argv),
                input=input,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except FileNotFoundError as e:
            raise PreconditionError(f"required command '{argv[0]}' not found") from e
        except subprocess.TimeoutExpired as e:
            out = e.stdout.decode() if isinstance(e.stdout, bytes) else (e.stdout or "")
            return CommandResult(
                stdout=out,
                stderr=f"timed out after {timeout}s",
                exit_code=TIMEOUT_EXIT_CODE,
            )
        return CommandResult(stdout=proc.stdout, stderr=proc.stderr, exit_code=proc.returncode)
