from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from luminarias.config import DEFAULT_MODEL
from luminarias.errors import ExtractionFailure, InvalidCredential, MissingCredential

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """Tu tarea es actuar como un experto en OCR para infraestructura urbana. Extrae el número de serie de la luminaria en la imagen. Presta mucha atención a los siguientes detalles:
1. Los números suelen estar pintados a mano y pueden estar desgastados, distorsionados o en un ángulo difícil.
2. El código suele ser de 5 dígitos.
3. Un '0' puede parecer un 'O', o incluso un 'W' o '11' si está mal pintado, como en el caso de '08390'. Sé muy cuidadoso al diferenciar.
4. Ignora cualquier otro texto o símbolo que no sea parte del código principal.
Responde únicamente con el número de serie extraído. Si no puedes determinar el número con certeza, responde con 'No encontrado'."""

INVALID_KEY_MARKER = "API key not valid"
INVALID_KEY_MESSAGE = "La clave de API no es válida. Por favor, revísala."
GENERIC_FAILURE_MESSAGE = "Fallo al procesar la imagen con la API de Gemini."


class ExtractionBackend(Protocol):
    """Minimal interface for a code-extraction backend."""

    name: str

    def extract_code(self, data: bytes, mime_type: str, credential: str) -> str:
        ...


@dataclass
class GeminiBackend:
    """Gemini-backed extraction using the google-genai SDK.

    Sends the image inline together with EXTRACTION_PROMPT and returns the
    model's answer stripped of surrounding whitespace (possibly empty).
    Clients are created lazily, one per credential.
    """

    name: str = "gemini"
    model: str = DEFAULT_MODEL
    timeout_seconds: float | None = None
    client_factory: Callable[[str], Any] | None = None
    _clients: dict[str, Any] = field(default_factory=dict, init=False, repr=False)

    def _client(self, credential: str) -> Any:
        client = self._clients.get(credential)
        if client is not None:
            return client

        if self.client_factory is not None:
            client = self.client_factory(credential)
        else:
            http_options = None
            if self.timeout_seconds:
                # google-genai expects milliseconds
                http_options = types.HttpOptions(timeout=int(self.timeout_seconds * 1000))
            client = genai.Client(api_key=credential, http_options=http_options)
        self._clients[credential] = client
        return client

    def extract_code(self, data: bytes, mime_type: str, credential: str) -> str:
        """Run OCR on one image and return the extracted text."""
        if not credential:
            raise MissingCredential()

        client = self._client(credential)
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=data, mime_type=mime_type),
                    EXTRACTION_PROMPT,
                ],
            )
        except genai_errors.APIError as e:
            logger.error(
                "gemini_api_error",
                extra={"status_code": e.code, "detail": e.message},
            )
            if INVALID_KEY_MARKER in str(e):
                raise InvalidCredential(INVALID_KEY_MESSAGE) from e
            raise ExtractionFailure(f"{GENERIC_FAILURE_MESSAGE} {e.message or e}") from e
        except Exception as e:
            logger.error("gemini_request_failed", extra={"detail": str(e)})
            raise ExtractionFailure(GENERIC_FAILURE_MESSAGE) from e

        return (response.text or "").strip()
