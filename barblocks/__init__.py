"""Status bar data sources: readers of system state and the rules that turn them into display states."""

__version__ = "0.1.0"