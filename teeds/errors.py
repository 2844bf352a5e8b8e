from __future__ import annotations


class TeedsError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class ValidationError(TeedsError):
    status_code = 400


class AuthError(TeedsError):
    status_code = 401


class ForbiddenError(TeedsError):
    status_code = 403


class NotFoundError(TeedsError):
    status_code = 404


class UpstreamError(TeedsError):
    status_code = 500


class EmailDeliveryError(Exception):
    pass


class StorageError(Exception):
    pass
