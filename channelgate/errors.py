class ExportError(Exception):
    status_code = 500

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ExportError):
    """Missing MAC, bad MAC format or a malformed EPG window."""

    status_code = 400


class AuthorizationError(ExportError):
    """Unknown/expired token, inactive device or user, no subscription.

    The message never tells "not found" apart from "inactive".
    """

    status_code = 401


class InternalError(ExportError):
    status_code = 500

    def __init__(self, message="Server error"):
        super().__init__(message)
