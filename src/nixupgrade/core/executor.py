"""Run the rebuild command to completion."""

import logging
import signal
import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

from nixupgrade.core.command import CommandSpec

logger = logging.getLogger(__name__)

# Interrupting a half-applied system upgrade is worse than finishing it.
MASKED_SIGNALS = (signal.SIGTERM, signal.SIGINT, signal.SIGHUP)


class ExecutionError(Exception):
    """Raised when the rebuild program cannot be started at all."""

    def __init__(self, argv: list[str], reason: str) -> None:
        self.argv = argv
        self.reason = reason
        super().__init__(f"failed to start {argv[0]}: {reason}")


@dataclass(frozen=True)
class ExecutionResult:
    """Exit status of one rebuild run."""

    exit_status: int
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.exit_status == 0 and not self.timed_out


@contextmanager
def masked_signals(signals: tuple[signal.Signals, ...] = MASKED_SIGNALS) -> Iterator[None]:
    """Ignore ``signals`` inside the block and restore the previous handlers after."""
    previous = {}
    try:
        for sig in signals:
            previous[sig] = signal.signal(sig, signal.SIG_IGN)
        yield
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


def execute(spec: CommandSpec, timeout: Optional[int] = None) -> ExecutionResult:
    """
    Run ``spec`` and block until it exits.

    The child inherits the environment and stdio, so its output lands in the
    same journal stream as ours. Termination signals are ignored while it
    runs; they only take effect once the rebuild has finished.

    Args:
        spec: Command to run
        timeout: Maximum seconds to wait; None waits indefinitely

    Returns:
        ExecutionResult with the child's exit status. A child killed on
        timeout reports ``timed_out=True``.

    Raises:
        ExecutionError: If the program is missing or cannot be executed
    """
    argv = spec.argv
    logger.info("Running command: %s", spec.display)

    with masked_signals():
        try:
            # Ignored dispositions are inherited across exec, so the child
            # is shielded too. SIGKILL from the service manager still applies.
            proc = subprocess.Popen(argv)
        except OSError as exc:
            raise ExecutionError(argv, str(exc)) from exc

        try:
            returncode = proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.error("%s did not finish within %ds; killing it", argv[0], timeout)
            proc.kill()
            returncode = proc.wait()
            return ExecutionResult(exit_status=returncode, timed_out=True)

    if returncode != 0:
        logger.warning("%s exited with status %d", argv[0], returncode)
    else:
        logger.info("%s completed successfully", argv[0])
    return ExecutionResult(exit_status=returncode)
