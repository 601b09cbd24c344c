"""Git Reporter: scheduled activity reports for GitHub repositories."""

__version__ = "0.1.0"
