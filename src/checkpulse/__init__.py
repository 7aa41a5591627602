"""checkpulse - weekly check-in compliance and roster reconciliation."""

__version__ = "0.1.0"
