"""API error definitions.

All API errors are defined here with their corresponding HTTP status codes.
"""

from enum import Enum


class ApiErrorCode(str, Enum):
    """Standardized error codes for the API.

    Format: E_CATEGORY_NAME
    """

    # Authentication errors (401)
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Authorization errors (403)
    E_FORBIDDEN = "E_FORBIDDEN"
    E_NOT_CIRCLE_MEMBER = "E_NOT_CIRCLE_MEMBER"
    E_HIGHLIGHT_NOT_OWNED = "E_HIGHLIGHT_NOT_OWNED"
    E_INVALID_SIGNATURE = "E_INVALID_SIGNATURE"

    # Not found errors (404)
    E_NOT_FOUND = "E_NOT_FOUND"
    E_EMAIL_NOT_FOUND = "E_EMAIL_NOT_FOUND"
    E_HIGHLIGHT_NOT_FOUND = "E_HIGHLIGHT_NOT_FOUND"
    E_COMMENT_NOT_FOUND = "E_COMMENT_NOT_FOUND"
    E_INVITE_NOT_FOUND = "E_INVITE_NOT_FOUND"
    E_ADDRESS_NOT_FOUND = "E_ADDRESS_NOT_FOUND"

    # Validation errors (400)
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_CURSOR = "E_INVALID_CURSOR"
    E_HIGHLIGHT_EMAIL_MISMATCH = "E_HIGHLIGHT_EMAIL_MISMATCH"

    # Conflict errors (409)
    E_INVITE_EXHAUSTED = "E_INVITE_EXHAUSTED"
    E_ADDRESS_ALREADY_CLAIMED = "E_ADDRESS_ALREADY_CLAIMED"

    # Gone (410)
    E_INVITE_EXPIRED = "E_INVITE_EXPIRED"

    # Server errors
    E_AUTH_UNAVAILABLE = "E_AUTH_UNAVAILABLE"  # 503
    E_INTERNAL = "E_INTERNAL"  # 500
    E_ADDRESS_UNAVAILABLE = "E_ADDRESS_UNAVAILABLE"  # 500


# Error code to HTTP status mapping
ERROR_CODE_TO_STATUS: dict[ApiErrorCode, int] = {
    ApiErrorCode.E_UNAUTHENTICATED: 401,
    ApiErrorCode.E_FORBIDDEN: 403,
    ApiErrorCode.E_NOT_CIRCLE_MEMBER: 403,
    ApiErrorCode.E_HIGHLIGHT_NOT_OWNED: 403,
    ApiErrorCode.E_INVALID_SIGNATURE: 403,
    ApiErrorCode.E_NOT_FOUND: 404,
    ApiErrorCode.E_EMAIL_NOT_FOUND: 404,
    ApiErrorCode.E_HIGHLIGHT_NOT_FOUND: 404,
    ApiErrorCode.E_COMMENT_NOT_FOUND: 404,
    ApiErrorCode.E_INVITE_NOT_FOUND: 404,
    ApiErrorCode.E_ADDRESS_NOT_FOUND: 404,
    ApiErrorCode.E_INVALID_REQUEST: 400,
    ApiErrorCode.E_INVALID_CURSOR: 400,
    ApiErrorCode.E_HIGHLIGHT_EMAIL_MISMATCH: 400,
    ApiErrorCode.E_INVITE_EXHAUSTED: 409,
    ApiErrorCode.E_ADDRESS_ALREADY_CLAIMED: 409,
    ApiErrorCode.E_INVITE_EXPIRED: 410,
    ApiErrorCode.E_AUTH_UNAVAILABLE: 503,
    ApiErrorCode.E_INTERNAL: 500,
    ApiErrorCode.E_ADDRESS_UNAVAILABLE: 500,
}


class ApiError(Exception):
    """Base exception for API errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
        status_code: HTTP status code (derived from code)
    """

    def __init__(self, code: ApiErrorCode, message: str):
        self.code = code
        self.message = message
        self.status_code = ERROR_CODE_TO_STATUS.get(code, 500)
        super().__init__(message)


class NotFoundError(ApiError):
    """Resource not found error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_NOT_FOUND, message: str = "Not found"):
        super().__init__(code, message)


class ForbiddenError(ApiError):
    """Authorization failure error."""

    def __init__(self, code: ApiErrorCode = ApiErrorCode.E_FORBIDDEN, message: str = "Forbidden"):
        super().__init__(code, message)


class InvalidRequestError(ApiError):
    """Invalid request error."""

    def __init__(
        self, code: ApiErrorCode = ApiErrorCode.E_INVALID_REQUEST, message: str = "Invalid request"
    ):
        super().__init__(code, message)


class ConflictError(ApiError):
    """State conflict error (409/410)."""

    def __init__(self, code: ApiErrorCode, message: str):
        super().__init__(code, message)
