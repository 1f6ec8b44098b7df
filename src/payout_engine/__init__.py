"""Worker settlement and payout engine."""

__version__ = "1.0.0"
