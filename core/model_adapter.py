"""Gemini ``generateContent`` client used by every agent.

The adapter owns the wire format of the remote call; retries live in
:class:`core.transport.Transport` and JSON recovery in
:mod:`core.json_extract`.
"""
from typing import Any, Dict

from core.config_manager import ModelSettings
from core.exceptions import ConfigurationError, InvalidResponseStructureError
from core.logging_utils import log_json
from core.transport import Transport


class ModelAdapter:
    """
    Sends a prompt plus role instructions to the text-generation service and
    returns the text of the first candidate.

    Settings are passed in explicitly; the adapter never reads the
    environment or the global config.
    """

    def __init__(self, settings: ModelSettings, transport: Transport = None):
        self.settings = settings
        self._owns_transport = transport is None
        headers = {"x-goog-api-key": settings.api_key} if settings.api_key else {}
        self.transport = transport or Transport(
            retry=settings.retry,
            timeout=settings.timeout,
            headers=headers,
        )

    def close(self) -> None:
        if self._owns_transport:
            self.transport.close()

    @property
    def model_name(self) -> str:
        return self.settings.model_name

    def is_configured(self) -> bool:
        return bool(self.settings.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.settings.api_base_url}/models/{self.settings.model_name}:generateContent"

    def build_payload(self, prompt: str, system_instruction: str, *,
                      response_mime_type: str = "application/json",
                      temperature: float = None, top_p: float = None,
                      max_output_tokens: int = None) -> Dict[str, Any]:
        s = self.settings
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "systemInstruction": {"parts": [{"text": system_instruction}]},
            "generationConfig": {
                "responseMimeType": response_mime_type,
                "temperature": s.temperature if temperature is None else temperature,
                "topP": s.top_p if top_p is None else top_p,
                "maxOutputTokens": s.max_output_tokens if max_output_tokens is None else max_output_tokens,
            },
        }

    @staticmethod
    def candidate_text(body: Any) -> str:
        """Return ``candidates[0].content.parts[0].text`` or raise."""
        try:
            text = body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = None
        if not isinstance(text, str) or not text:
            raise InvalidResponseStructureError("Invalid response structure from API.")
        return text

    def generate(self, prompt: str, system_instruction: str, **generation_options) -> str:
        if not self.is_configured():
            raise ConfigurationError(
                "Gemini API key not found. Set GEMINI_API_KEY or api_key in codevibe.config.json."
            )
        payload = self.build_payload(prompt, system_instruction, **generation_options)
        body = self.transport.call(self.endpoint, payload)
        try:
            return self.candidate_text(body)
        except InvalidResponseStructureError:
            log_json("ERROR", "model_response_structure_invalid",
                     details={"model": self.model_name,
                              "keys": sorted(body) if isinstance(body, dict) else type(body).__name__})
            raise
