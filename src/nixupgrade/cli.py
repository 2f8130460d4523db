"""Command-line entry point for nixupgrade."""

import logging
import logging.handlers
import sys
from pathlib import Path

import click

from nixupgrade import __version__
from nixupgrade.config.loader import DEFAULT_CONFIG_PATH

SYSLOG_SOCKET = Path("/dev/log")


def _setup_logging(verbose: bool, syslog: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    if syslog and SYSLOG_SOCKET.exists():
        try:
            handler = logging.handlers.SysLogHandler(address=str(SYSLOG_SOCKET))
        except OSError as exc:
            logging.getLogger(__name__).debug("Syslog unavailable: %s", exc)
            return
        handler.ident = "nixupgrade: "
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s %(message)s"))
        logging.getLogger().addHandler(handler)


@click.command()
@click.version_option(version=__version__, prog_name="nixupgrade")
@click.option(
    "--config",
    "-c",
    default=str(DEFAULT_CONFIG_PATH),
    envvar="NIXUPGRADE_CONFIG",
    show_default=True,
    help="Path to the upgrade config file (JSON or YAML)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option("--dry-run", is_flag=True, help="Log the rebuild command without running it")
@click.option(
    "--syslog/--no-syslog",
    default=True,
    show_default=True,
    help="Also send log records to the system log",
)
def main(config: str, verbose: bool, dry_run: bool, syslog: bool) -> None:
    """Upgrade NixOS once, as part of the shutdown sequence.

    Exit status: 0 on success or skip, 1 on configuration errors,
    2 if the rebuild failed.
    """
    _setup_logging(verbose, syslog)

    from nixupgrade.core.orchestrator import run

    code, _ = run(Path(config), dry_run=dry_run)
    sys.exit(code)


if __name__ == "__main__":
    main()
