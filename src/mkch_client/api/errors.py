from __future__ import annotations


class MkchError(Exception):
    """Base class for errors raised to callers of the mkch client."""


class MkchApiError(MkchError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status={self.status_code})"


class OfflineError(MkchError):
    """The client is offline, either forced by the user or without a network path."""


class OfflineNoDataError(OfflineError):
    def __init__(self, key: str) -> None:
        super().__init__(f"offline and no cached data for {key}")
        self.key = key
