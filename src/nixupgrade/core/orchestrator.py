"""Shutdown-time upgrade orchestration."""

import logging
from datetime import datetime, time, timezone
from pathlib import Path
from typing import Callable, Iterable, Optional

from nixupgrade.config.loader import ConfigError, UpgradeConfig, load_config
from nixupgrade.core.command import CommandSpec, build_command
from nixupgrade.core.executor import ExecutionError, ExecutionResult, execute
from nixupgrade.core.network import is_network_available
from nixupgrade.core.outcome import Stage, UpgradeOutcome, log_outcome
from nixupgrade.core.reboot import (
    RebootCheckError,
    RebootError,
    reboot_required,
    trigger_reboot,
)
from nixupgrade.core.window import is_within_window

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_UPGRADE_FAILED = 2

NetworkCheck = Callable[[float, Iterable[str]], bool]
Executor = Callable[[CommandSpec, Optional[int]], ExecutionResult]


def _local_time_of_day() -> time:
    return datetime.now().time()


def run(
    config_path: Path,
    *,
    dry_run: bool = False,
    network_check: NetworkCheck = is_network_available,
    executor: Executor = execute,
    needs_reboot: Callable[[], bool] = reboot_required,
    reboot: Callable[[], None] = trigger_reboot,
    clock: Callable[[], time] = _local_time_of_day,
) -> tuple[int, UpgradeOutcome]:
    """
    Perform at most one upgrade attempt and report how it went.

    Workflow:
        1. Load and validate the config (fatal on error, exit 1)
        2. Probe the network (no network: skip, exit 0)
        3. Build the nixos-rebuild command
        4. Run it (nonzero exit, timeout or spawn failure: exit 2)
        5. Reboot if allowed, needed and inside the reboot window

    Every collaborator is a keyword argument so that callers (and tests) can
    substitute them.

    Args:
        config_path: Path to the upgrade config file
        dry_run: Stop after building the command instead of running it

    Returns:
        Tuple of (process exit code, UpgradeOutcome)
    """
    outcome = UpgradeOutcome()
    logger.info("Starting NixOS upgrade on shutdown")
    try:
        code = _run_inner(
            Path(config_path),
            outcome,
            dry_run=dry_run,
            network_check=network_check,
            executor=executor,
            needs_reboot=needs_reboot,
            reboot=reboot,
            clock=clock,
        )
    finally:
        outcome.finished_at = datetime.now(timezone.utc)
        log_outcome(outcome)
    return code, outcome


def _run_inner(
    config_path: Path,
    outcome: UpgradeOutcome,
    *,
    dry_run: bool,
    network_check: NetworkCheck,
    executor: Executor,
    needs_reboot: Callable[[], bool],
    reboot: Callable[[], None],
    clock: Callable[[], time],
) -> int:
    # ── Load config ──────────────────────────────────────────────────────────
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        logger.error("Failed to load configuration: %s", exc)
        outcome.add_error(Stage.START, exc.kind, str(exc))
        return EXIT_CONFIG_ERROR
    outcome.stage = Stage.CONFIG_LOADED
    logger.info(
        "Configuration: operation=%s source=%s allow_reboot=%s window=%s",
        config.operation.value,
        config.source,
        config.allow_reboot,
        config.reboot_window or "none",
    )

    # ── Network ──────────────────────────────────────────────────────────────
    outcome.network_available = network_check(config.network_timeout, config.network_probes)
    outcome.stage = Stage.NETWORK_CHECKED
    if not outcome.network_available:
        logger.warning("Network is not available, skipping upgrade")
        outcome.stage = Stage.SKIPPED
        return EXIT_OK

    # ── Build command ────────────────────────────────────────────────────────
    spec = build_command(config)
    outcome.command = spec
    outcome.stage = Stage.COMMAND_BUILT
    if dry_run:
        logger.info("[DRY RUN] Would run: %s", spec.display)
        outcome.stage = Stage.DONE
        return EXIT_OK

    # ── Execute ──────────────────────────────────────────────────────────────
    logger.info("Running NixOS upgrade with operation: %s", config.operation.value)
    try:
        result = executor(spec, config.timeout)
    except ExecutionError as exc:
        logger.error("%s", exc)
        outcome.add_error(Stage.COMMAND_BUILT, "ExecutionFailure", str(exc))
        return EXIT_UPGRADE_FAILED
    outcome.command_executed = True
    outcome.exit_status = result.exit_status
    outcome.timed_out = result.timed_out
    outcome.stage = Stage.EXECUTED

    if not result.success:
        reason = (
            f"timed out after {config.timeout}s"
            if result.timed_out
            else f"exited with status {result.exit_status}"
        )
        logger.error("NixOS upgrade failed: %s %s", config.program, reason)
        outcome.add_error(Stage.EXECUTED, "ExecutionFailure", f"{config.program} {reason}")
        return EXIT_UPGRADE_FAILED

    # ── Reboot ───────────────────────────────────────────────────────────────
    _maybe_reboot(config, outcome, needs_reboot=needs_reboot, reboot=reboot, clock=clock)
    logger.info("NixOS upgrade completed successfully")
    return EXIT_OK


def _maybe_reboot(
    config: UpgradeConfig,
    outcome: UpgradeOutcome,
    *,
    needs_reboot: Callable[[], bool],
    reboot: Callable[[], None],
    clock: Callable[[], time],
) -> None:
    """Reboot after a successful rebuild if allowed, needed and in the window."""
    outcome.stage = Stage.DONE
    if not config.allow_reboot:
        return

    try:
        required = needs_reboot()
    except RebootCheckError as exc:
        logger.warning("Could not determine whether a reboot is needed: %s", exc)
        outcome.add_error(Stage.EXECUTED, "RebootCheckFailed", str(exc))
        return
    if not required:
        logger.info("Boot components unchanged, no reboot needed")
        return

    # The window is checked against the clock now, not when the config was loaded.
    now = clock()
    if not is_within_window(config.reboot_window, now):
        logger.info(
            "Outside of configured reboot window (%s, now %s), deferring reboot",
            config.reboot_window,
            now.strftime("%H:%M"),
        )
        outcome.reboot_deferred = True
        outcome.stage = Stage.REBOOT_DEFERRED
        return

    logger.info("Initiating reboot since kernel, initrd or modules have changed")
    try:
        reboot()
    except RebootError as exc:
        logger.error("Reboot failed: %s", exc)
        outcome.add_error(Stage.EXECUTED, "RebootFailed", str(exc))
        return
    outcome.reboot_triggered = True
    outcome.stage = Stage.REBOOT_TRIGGERED
