"""Build the nixos-rebuild invocation from an UpgradeConfig."""

import shlex
from dataclasses import dataclass

from nixupgrade.config.loader import SourceKind, UpgradeConfig


@dataclass(frozen=True)
class CommandSpec:
    """A program and its ordered argument list."""

    program: str
    args: tuple[str, ...] = ()

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @property
    def display(self) -> str:
        return shlex.join(self.argv)

    def __str__(self) -> str:
        return self.display


def build_command(config: UpgradeConfig) -> CommandSpec:
    """
    Translate a validated config into ``nixos-rebuild <op> [--flake uri] [flags...]``.

    Channel sources add no argument: the channel is selected through the
    system's channel state, not on the command line.
    """
    args: list[str] = [config.operation.value]
    if config.source.kind is SourceKind.FLAKE:
        args.extend(["--flake", config.source.value or ""])
    args.extend(config.extra_flags)
    return CommandSpec(program=config.program, args=tuple(args))
