class TraceItError(Exception):
    """Base class for every error raised by the persistence core."""


class ValidationError(TraceItError):
    """Input rejected before reaching the store. Never retried."""


class MissingTitleError(ValidationError):
    def __init__(self, message: str = "Title is required"):
        super().__init__(message)


class InvalidFieldError(ValidationError):
    pass


class FolderConflictError(TraceItError):
    def __init__(self, name: str):
        super().__init__(f"Folder already exists: {name}")
        self.name = name


class ProtectedFolderError(TraceItError):
    def __init__(self, name: str):
        super().__init__(f"Cannot delete {name} folder")
        self.name = name


class BackendError(TraceItError):
    """
    Driver or connectivity failure.
    `code` carries the SQLite error name when the driver reports one
    (e.g. SQLITE_CONSTRAINT_UNIQUE).
    """

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_unique_violation(self) -> bool:
        if self.code and self.code.startswith(("SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY")):
            return True
        return "UNIQUE constraint failed" in self.message

    def violates(self, table: str, column: str) -> bool:
        """True if this is a unique violation on table.column."""
        return self.is_unique_violation and f"{table}.{column}" in self.message

    def __str__(self):
        if self.code:
            return f"{self.message} ({self.code})"
        return self.message
