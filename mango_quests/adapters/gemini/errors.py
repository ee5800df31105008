"""
Gemini-specific error classes.
"""


class GeminiError(Exception):
    """Base exception for Gemini adapter errors."""
    pass


class GeminiConfigError(GeminiError):
    """Raised when the Gemini configuration is invalid (e.g. no API key)."""
    pass


class GeminiRequestError(GeminiError):
    """Raised when the HTTP call fails after retries."""
    
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class GeminiResponseError(GeminiError):
    """Raised when the response has no usable content."""
    pass
