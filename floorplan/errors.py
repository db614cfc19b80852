"""Error taxonomy shared by the services, the gateway and the API."""

from __future__ import annotations
from typing import Optional


class FloorPlanError(Exception):
    """Base error. `status` is the HTTP-equivalent status, when one applies."""

    status: Optional[int] = None

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status

    def __str__(self) -> str:
        return self.message


# ---- Validation (local, never retried) ----


class ValidationError(FloorPlanError):
    status = 400


class MissingInput(ValidationError):
    status = 400


class UnsupportedImageType(ValidationError):
    status = 415


class ImageTooLarge(ValidationError):
    status = 413


# ---- Transport ----


class TransportError(FloorPlanError):
    """A failed network call. Carries the originating status when known."""


class RequestTimeout(TransportError):
    status = 504

    def __init__(self, message: str = "Request timeout") -> None:
        super().__init__(message)


class RequestAborted(TransportError):
    def __init__(self, message: str = "Request aborted") -> None:
        super().__init__(message)


# ---- Provider ----


class ProviderError(FloorPlanError):
    """An error reported by an upstream AI or speech provider."""


class EmptyResponse(ProviderError):
    pass


class TruncatedResponse(ProviderError):
    pass


class ContentFiltered(ProviderError):
    pass


class InvalidResponse(ProviderError):
    pass


class SpeechSynthesisError(ProviderError):
    status = 500

