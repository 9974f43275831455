"""Application exception types."""

from filetrail.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


class _TaxonomyError(ApiError):
    status_code_default = 500
    code_default = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(
            status_code=self.status_code_default,
            code=self.code_default,
            message=message,
            details=details,
        )


class CredentialError(_TaxonomyError):
    """Identifier/secret pair rejected by the identity provider."""

    status_code_default = 401
    code_default = "INVALID_CREDENTIALS"


class AuthorizationError(_TaxonomyError):
    """Valid credentials, insufficient role for the requested context."""

    status_code_default = 403
    code_default = "ACCESS_DENIED"


class ValidationError(_TaxonomyError):
    """Malformed input, rejected before any network call."""

    status_code_default = 422
    code_default = "VALIDATION_ERROR"


class DuplicateIdentityError(_TaxonomyError):
    status_code_default = 409
    code_default = "IDENTITY_EXISTS"


class NotAuthenticatedError(_TaxonomyError):
    status_code_default = 401
    code_default = "UNAUTHORIZED"


class TransientBackendError(_TaxonomyError):
    """Provider or network failure unrelated to the caller's input; safe to retry."""

    status_code_default = 503
    code_default = "BACKEND_UNAVAILABLE"


def not_found() -> ApiError:
    return ApiError(status_code=404, code="RESOURCE_NOT_FOUND", message="Resource not found")


__all__ = [
    "ApiError",
    "AuthorizationError",
    "CredentialError",
    "DuplicateIdentityError",
    "NotAuthenticatedError",
    "TransientBackendError",
    "ValidationError",
    "not_found",
]
