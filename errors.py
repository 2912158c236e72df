"""Errors raised by the stores and the session issuer.

Each carries the HTTP status the API answers with; the body is always
``{"error": message}``.
"""


class SehatError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SehatError):
    status_code = 400


class DuplicateEmail(ValidationError):
    pass


class AuthError(SehatError):
    status_code = 401


class NotFound(SehatError):
    status_code = 404


class StoreError(SehatError):
    status_code = 500
