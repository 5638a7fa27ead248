r"""backend/app/services/llm_service.py

Integration with Google's Gemini API (``google-generativeai``).

The forecast pipeline talks to the model through the small ``ModelEndpoint``
protocol: one prompt in, one reply text out.  ``GeminiModelClient`` is the
production implementation; tests hand the orchestrator their own endpoint.
If ``GEMINI_API_KEY`` is not set the client still constructs, but every
invocation fails with ``UpstreamUnavailableError``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import google.generativeai as genai

from ..core.errors import MalformedModelResponseError, UpstreamUnavailableError

LOGGER = logging.getLogger(__name__)


class ModelEndpoint(Protocol):
    def invoke(self, prompt: str, max_tokens: int) -> str: ...


class GeminiModelClient:
    """Single-turn text generation against a Gemini model."""

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-2.5-flash",
        timeout_seconds: Optional[float] = 60.0,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._model: Optional[Any] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _get_model(self) -> Any:
        if not self.configured:
            raise UpstreamUnavailableError(
                "Generative model is not configured; set GEMINI_API_KEY to enable forecasts."
            )
        if self._model is None:
            # Module-level configure; the SDK keeps the key process-wide.
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def invoke(self, prompt: str, max_tokens: int) -> str:
        """Send ``prompt`` as one user turn and return the reply text."""

        model = self._get_model()
        request_options = {"timeout": self.timeout_seconds} if self.timeout_seconds else None
        try:
            response = model.generate_content(
                [{"role": "user", "parts": [prompt]}],
                generation_config={"max_output_tokens": int(max_tokens)},
                request_options=request_options,
            )
        except Exception as exc:
            LOGGER.exception("Gemini call failed for model=%s", self.model_name)
            raise UpstreamUnavailableError(f"Generative model call failed: {exc}") from exc

        try:
            text = response.text
        except ValueError as exc:
            # Raised by the SDK when the reply carries no text part (e.g. blocked).
            raise MalformedModelResponseError("Generative model returned no text.") from exc
        return text.strip() if isinstance(text, str) else ""
