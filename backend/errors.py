# backend/errors.py
from typing import Optional


class FysiosimError(Exception):
    """Base error; the HTTP layer turns these into `{error, details}` bodies."""

    status_code = 500
    error = "Server error"

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error


class ConfigError(FysiosimError):
    status_code = 500
    error = "Configuratiefout"


class NotFound(FysiosimError):
    status_code = 404
    error = "Niet gevonden"


class Forbidden(FysiosimError):
    status_code = 403
    error = "Geen toegang"


class Unauthorized(FysiosimError):
    status_code = 401
    error = "Unauthorized"


class ValidationError(FysiosimError):
    status_code = 400
    error = "Ongeldige invoer"


class ServiceError(FysiosimError):
    """Non-success answer from the completion service."""

    status_code = 502
    error = "Gemini API error"

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        if upstream_status is not None:
            message = f"Gemini API error: {upstream_status} - {message}"
        else:
            message = f"Gemini API error: {message}"
        super().__init__(message)
        self.upstream_status = upstream_status


class EmptyResponseError(FysiosimError):
    status_code = 502
    error = "Leeg antwoord van Gemini API"


class GenerationError(FysiosimError):
    status_code = 502
    error = "Fout bij genereren wachtkamer"
