"""Resumable, process-parallel object copy between key-value storage backends."""

__version__ = "0.2.0"

__all__ = ["__version__"]
