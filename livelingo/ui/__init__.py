"""Console front end for LiveLingo."""

from .console import ConsoleListener

__all__ = ["ConsoleListener"]
