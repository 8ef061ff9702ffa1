"""Pull request size classification and comment reconciliation."""

__version__ = "0.1.0"
