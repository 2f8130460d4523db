"""nixupgrade: run a NixOS upgrade once, at shutdown time."""

__version__ = "0.1.0"
