"""Asynchronous souvenir concept generation service."""

__version__ = "0.1.0"
