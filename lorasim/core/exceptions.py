"""
core/exceptions.py
------------------
Domain exceptions raised by the service layer.

Authentication (401) and authorisation (403) failures are raised directly as
HTTPException from dependencies.py; everything here is translated to a
response by the route that calls the service.
"""

from typing import Optional


class KeySetUnavailableError(Exception):
    """The identity provider's JWKS could not be fetched."""


class UnknownEventTypeError(Exception):
    def __init__(self, event_type: str) -> None:
        self.event_type = event_type
        super().__init__(f"Unknown event type: {event_type}")


class WebhookProcessingError(Exception):
    """A sync handler could not apply a webhook event."""


class ExternalApiError(Exception):
    """
    A call to The Things Network API failed.

    status_code is None when no HTTP response was received
    (DNS failure, timeout, connection reset).
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[str] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ResourceNotFoundError(Exception):
    """A referenced row does not exist in the caller's organisation."""
