"""Module for database models."""

from . import file, folder, security  # noqa: F401

__all__ = [
    "file",
    "folder",
    "security",
]
