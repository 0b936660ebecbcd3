"""Domain exceptions raised by adapters and services."""


class LibraryProxyError(Exception):
    """A library-proxy call failed (configuration, transport, or upstream error)."""


class AIServiceError(Exception):
    """A language-model call failed."""

    message = "AI recommendation failed"


class AIResponseFormatError(AIServiceError):
    """Model output was not in the requested JSON shape."""

    message = "Failed to parse AI response"


class AITimeoutError(AIServiceError):
    """The model did not answer within the configured timeout."""

    message = "AI recommendation timed out"


class InvalidQueryError(ValueError):
    """Client input is missing or malformed; routes answer 400."""
