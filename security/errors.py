class SecurityError(Exception):
    """
    Base for errors surfaced to the client as {"error": message}.
    Subclasses set the HTTP status.
    """
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(SecurityError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationDenied(SecurityError):
    status_code = 403
    default_message = "Forbidden"


class InvalidOperation(SecurityError):
    status_code = 400
    default_message = "Invalid operation"


class NotFound(SecurityError):
    status_code = 404
    default_message = "Not found"


class ValidationFailed(SecurityError):
    status_code = 400
    default_message = "Invalid request"


class CsrfError(SecurityError):
    status_code = 403
    default_message = "CSRF validation failed"


class CsrfTokenMissing(CsrfError):
    default_message = "CSRF token missing"


class CsrfTokenInvalid(CsrfError):
    default_message = "Invalid or expired CSRF token"


class DataCorruption(SecurityError):
    """Unreadable client-held state. The handler deletes `cookies` on the way out."""
    status_code = 400
    default_message = "Invalid data"
    cookies = ()


class ImpersonationDataError(DataCorruption):
    default_message = "Invalid impersonation data"
    cookies = ("impersonation", "admin_session")
