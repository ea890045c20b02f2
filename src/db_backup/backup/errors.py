"""Exceptions raised by the backup engine.

``InvalidBackupError`` is raised before any database mutation and
``RestoreError`` after a restore transaction was rolled back.  Per-row
replay problems are never raised -- they are counted in the
``RestoreResult``.
"""


class DbBackupError(Exception):
    """Base class for all backup engine errors."""

    pass


class InvalidBackupError(DbBackupError):
    """Raised when a dump file is missing, empty, or lacks the header marker."""

    pass


class RestoreError(DbBackupError):
    """Raised when a restore transaction failed and was rolled back."""

    pass


class UnknownTableError(DbBackupError):
    """Raised when a table name is not in the catalog whitelist."""

    pass
