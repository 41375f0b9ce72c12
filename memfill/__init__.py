"""memfill: memory-driven web form autofill."""

__version__ = "0.1.0"
