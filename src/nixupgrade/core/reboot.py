"""Decide whether the new generation needs a reboot, and trigger it."""

import logging
import os
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

BOOTED_SYSTEM = Path("/run/booted-system")
NEW_SYSTEM = Path("/nix/var/nix/profiles/system")
# Changing any of these only takes effect after a reboot.
BOOT_COMPONENTS = ("kernel", "initrd", "kernel-modules")

REBOOT_DELAY = "+1"
REBOOT_MESSAGE = "NixOS upgrade requires reboot"


class RebootCheckError(Exception):
    """Raised when the booted and new system generations cannot be compared."""


class RebootError(Exception):
    """Raised when the reboot command cannot be issued."""


def _resolve(path: Path) -> str:
    if not path.exists():
        raise RebootCheckError(f"{path} does not exist")
    return os.path.realpath(path)


def reboot_required(
    booted: Path = BOOTED_SYSTEM,
    built: Path = NEW_SYSTEM,
) -> bool:
    """
    Compare the booted system with the newest system profile.

    Returns:
        True if the kernel, initrd or kernel modules differ

    Raises:
        RebootCheckError: If a component link cannot be resolved
    """
    for component in BOOT_COMPONENTS:
        current = _resolve(booted / component)
        new = _resolve(built / component)
        if current != new:
            logger.info("Boot component '%s' changed: %s -> %s", component, current, new)
            return True
    logger.debug("Kernel, initrd and kernel modules are unchanged")
    return False


def trigger_reboot(delay: str = REBOOT_DELAY, message: str = REBOOT_MESSAGE) -> None:
    """
    Schedule a system reboot with ``shutdown -r``.

    Raises:
        RebootError: If shutdown is missing or exits non-zero
    """
    cmd = ["shutdown", "-r", delay, message]
    logger.info("Issuing reboot: %s", " ".join(cmd[:3]))
    try:
        result = subprocess.run(cmd, check=False, capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as exc:
        raise RebootError(f"failed to run shutdown: {exc}") from exc
    if result.returncode != 0:
        raise RebootError(
            f"shutdown exited {result.returncode}: {(result.stderr or '').strip()}"
        )
