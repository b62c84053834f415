"""Custom exceptions for cclauncher"""

from typing import Optional


class CCLauncherError(Exception):
    """Base exception for all cclauncher errors."""
    pass


class GitOperationError(CCLauncherError):
    """Exception raised for errors in Git operations."""

    def __init__(self, operation: str, branch: Optional[str] = None, message: Optional[str] = None):
        self.operation = operation
        self.branch = branch
        self.message = message

        error_msg = f"Git operation '{operation}' failed"
        if branch:
            error_msg += f" for branch '{branch}'"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class WorktreeError(GitOperationError):
    """Exception raised when a worktree cannot be created or changed."""

    def __init__(self, operation: str, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(operation, message=message)


class ScriptValidationError(CCLauncherError):
    """Exception raised when a setup script configuration is malformed."""

    def __init__(self, raw: str, message: str):
        self.raw = raw
        self.message = message
        super().__init__(f"Invalid setup script {raw!r}: {message}")


class MarkerFileError(CCLauncherError):
    """Exception raised when the setup completion marker cannot be read or removed."""

    def __init__(self, path: str, operation: str, message: Optional[str] = None):
        self.path = path
        self.operation = operation  # "read" or "write"
        self.message = message

        error_msg = f"Could not {operation} marker file {path}"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class StoreError(CCLauncherError):
    """Exception raised by the model and project stores."""

    REASONS = ("read", "write", "validation", "not_found", "duplicate")

    def __init__(self, reason: str, message: str):
        if reason not in self.REASONS:
            raise ValueError(f"Unknown store error reason: {reason}")
        self.reason = reason
        self.message = message
        super().__init__(message)
