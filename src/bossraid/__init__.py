"""Boss raid data-sync and scoring engine."""

__version__ = "0.1.0"
