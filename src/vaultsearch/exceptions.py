"""
vaultsearch exceptions.

Only pass-level and programmer errors are raised. Per-document and
per-chunk failures travel as values, see ``vaultsearch.result``.
"""

from typing import Any


class VaultSearchError(Exception):
    """Base exception for vaultsearch errors."""

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class SearchEngineError(VaultSearchError):
    """Raised when the search index cannot be reached or rejects a request."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, code=code)


class IndexNotFoundError(SearchEngineError):
    """Raised when the configured index does not exist."""

    def __init__(self, index_uid: str):
        self.index_uid = index_uid
        super().__init__(
            f"Index '{index_uid}' not found",
            code="index_not_found",
            status_code=404,
        )


class TaskFailedError(SearchEngineError):
    """Raised when an asynchronous index task ends in a non-success state."""

    def __init__(self, task: dict[str, Any]):
        self.task = task
        error = task.get("error") or {}
        super().__init__(
            f"Task {task.get('uid')} ({task.get('type')}) {task.get('status')}: "
            f"{error.get('message', 'no error message')}",
            code=error.get("code"),
        )


class TaskTimeoutError(SearchEngineError):
    """Raised when an index task does not reach a terminal state in time."""

    def __init__(self, task_uid: int, timeout: float):
        self.task_uid = task_uid
        super().__init__(f"Task {task_uid} did not finish within {timeout}s", code="task_timeout")


class SyncError(VaultSearchError):
    """Raised when a reconciliation pass fails as a whole."""

    def __init__(self, message: str, cause: Exception | None = None):
        self.cause = cause
        super().__init__(message, code="sync_failed")
