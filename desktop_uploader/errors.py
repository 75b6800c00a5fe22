"""Exceptions raised by Desktop Uploader."""


class DesktopUploaderError(Exception):
    """Base class for every error raised by this package."""


class StateFileError(DesktopUploaderError):
    """The persisted state document exists but cannot be used."""

    def __init__(self, path, reason: str):
        super().__init__(f"Malformed state file {path}: {reason}")
        self.path = path
        self.reason = reason


class StatError(DesktopUploaderError):
    """A file could not be stat'ed while settling or before transfer."""

    def __init__(self, path: str, cause: OSError):
        super().__init__(f"Cannot stat {path}: {cause}")
        self.path = path
        self.cause = cause
