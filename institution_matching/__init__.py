"""Institution matching and deduplication engine for the AED registry."""

__version__ = "0.1.0"
