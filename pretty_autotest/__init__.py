"""Re-run a project's tests whenever its source files change."""

__version__ = "0.1.0"
