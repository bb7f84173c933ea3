"""Exceptions raised by the folder store services."""

__all__ = [
    "FolderStoreException",
    "InvalidArgumentException",
    "FolderNotFoundException",
    "ForbiddenException",
    "InvalidOperationException",
    "UnsupportedDestinationException",
]


class FolderStoreException(Exception):
    """Exception raised by the folder store."""


class InvalidArgumentException(FolderStoreException):
    """A required identifier is missing, empty or the unset sentinel."""


class FolderNotFoundException(FolderStoreException):
    """A referenced folder or ancestor does not exist for the tenant."""


class ForbiddenException(FolderStoreException):
    """The operation is not allowed on a protected system folder."""


class InvalidOperationException(FolderStoreException):
    """The operation would break the hierarchy, e.g. a cyclic move."""


class UnsupportedDestinationException(FolderStoreException):
    """The destination id type is not supported by the operation."""
