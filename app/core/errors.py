"""
Domain errors shared by the automation, members and audit modules.

Services raise these; app.main maps them onto HTTP responses.
"""
from typing import Optional


class AppError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RemoteError(AppError):
    """The Roblox group service rejected or failed a request."""

    status_code = 502

    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(message)

    def __str__(self) -> str:
        return f"Roblox API Error {self.status}: {self.message}"


class ConfigError(AppError):
    """An operation needs configuration that is not set (e.g. no suspended role)."""

    status_code = 400


class StoreError(AppError):
    """Document store read/write failure."""

    status_code = 503

    def __init__(self, message: str, collection: Optional[str] = None, doc_id: Optional[str] = None):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """The request conflicts with the member's current state (e.g. an active suspension)."""

    status_code = 409
