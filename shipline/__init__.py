"""Release pipeline for the squiflog container image."""

__version__ = "0.1.0"
