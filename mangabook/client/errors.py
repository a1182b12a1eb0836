from typing import Optional


class ApiError(Exception):
    """A request to the list server failed."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.detail = detail


class ValidationError(ApiError):
    pass


class Unauthorized(ApiError):
    pass


class Forbidden(ApiError):
    pass


class NotFound(ApiError):
    pass


class Conflict(ApiError):
    pass


class RateLimited(ApiError):
    pass


class UpstreamError(ApiError):
    """Server-side or transport failure; nothing the user did wrong."""


_BY_STATUS = {
    400: ValidationError,
    401: Unauthorized,
    403: Forbidden,
    404: NotFound,
    409: Conflict,
    422: ValidationError,
    429: RateLimited,
}


def error_for_status(status_code: int, message: str, detail=None) -> ApiError:
    cls = _BY_STATUS.get(status_code)
    if cls is None:
        cls = UpstreamError if status_code >= 500 else ApiError
    return cls(message, status_code=status_code, detail=detail)


# Local errors raised by the category map before anything is sent


class CategoryExists(ValueError):
    pass


class CategoryNotFound(KeyError):
    pass


class EntryNotFound(KeyError):
    pass


class ImportFormatError(ValueError):
    pass
