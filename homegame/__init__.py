"""Home-game poker session ledger and settlement engine."""

__version__ = "1.0.0"
