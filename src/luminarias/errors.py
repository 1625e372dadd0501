"""Exceptions raised by the extraction client and the batch pipeline."""

from __future__ import annotations


class LuminariasError(Exception):
    """Base class for luminarias errors."""


class MissingCredential(LuminariasError):
    """No API key is configured; a batch run cannot start."""

    def __init__(self, message: str = "Falta la clave de API. Por favor, configúrala.") -> None:
        super().__init__(message)


class ExtractionFailure(LuminariasError):
    """The OCR service could not extract a code from one image."""


class InvalidCredential(ExtractionFailure):
    """The OCR service rejected the API key."""
