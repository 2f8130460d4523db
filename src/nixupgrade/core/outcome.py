"""Upgrade outcome record and its log entry."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from nixupgrade.core.command import CommandSpec

logger = logging.getLogger(__name__)


class Stage(Enum):
    START = "start"
    CONFIG_LOADED = "config-loaded"
    NETWORK_CHECKED = "network-checked"
    SKIPPED = "skipped"
    COMMAND_BUILT = "command-built"
    EXECUTED = "executed"
    REBOOT_TRIGGERED = "reboot-triggered"
    REBOOT_DEFERRED = "reboot-deferred"
    DONE = "done"


@dataclass(frozen=True)
class ErrorRecord:
    """One problem encountered during a run."""

    stage: Stage
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.stage.value}/{self.kind}: {self.message}"


@dataclass
class UpgradeOutcome:
    """What happened during one upgrade run."""

    network_available: bool = False
    command_executed: bool = False
    exit_status: Optional[int] = None
    timed_out: bool = False
    reboot_triggered: bool = False
    reboot_deferred: bool = False
    command: Optional[CommandSpec] = None
    stage: Stage = Stage.START
    errors: list[ErrorRecord] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    @property
    def reboot_state(self) -> str:
        if self.reboot_triggered:
            return "triggered"
        if self.reboot_deferred:
            return "deferred"
        return "none"

    def add_error(self, stage: Stage, kind: str, message: str) -> None:
        self.errors.append(ErrorRecord(stage=stage, kind=kind, message=message))

    def as_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage.value,
            "network_available": self.network_available,
            "command": self.command.argv if self.command else None,
            "command_executed": self.command_executed,
            "exit_status": self.exit_status,
            "timed_out": self.timed_out,
            "reboot": self.reboot_state,
            "errors": [str(e) for e in self.errors],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


def format_outcome(outcome: UpgradeOutcome) -> str:
    """Render an outcome as a single ``key=value`` line."""
    command = outcome.command.display if outcome.command else "-"
    exit_status = "-" if outcome.exit_status is None else str(outcome.exit_status)
    parts = [
        f"stage={outcome.stage.value}",
        f"network={'yes' if outcome.network_available else 'no'}",
        f"command={command!r}",
        f"executed={'yes' if outcome.command_executed else 'no'}",
        f"exit_status={exit_status}",
        f"reboot={outcome.reboot_state}",
    ]
    if outcome.timed_out:
        parts.append("timed_out=yes")
    if outcome.finished_at is not None:
        parts.append(f"duration={(outcome.finished_at - outcome.started_at).total_seconds():.1f}s")
    if outcome.errors:
        parts.append("errors=" + "; ".join(str(e) for e in outcome.errors))
    return " ".join(parts)


def log_outcome(outcome: UpgradeOutcome, log: logging.Logger = logger) -> None:
    """
    Write one summary record for the run.

    Never raises: a broken log sink must not stop the machine from shutting
    down.
    """
    try:
        level = logging.ERROR if outcome.errors else logging.INFO
        log.log(
            level,
            "Upgrade outcome: %s",
            format_outcome(outcome),
            extra={"outcome": outcome.as_dict()},
        )
    except Exception:
        pass
