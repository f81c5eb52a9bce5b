"""Site Schedule: schedule and dependency engine for construction projects."""

__version__ = "0.1.0"
