"""
Thin async wrapper over the google-generativeai SDK for single-turn scoring
prompts.
"""

import asyncio
from typing import Optional

import google.generativeai as genai


class LlmChat:
    """
    Supports the chaining API:
        chat = LlmChat(api_key=..., system_message=...)
            .with_model("gemini-2.5-flash")
            .with_params(temperature=0, max_output_tokens=200)

    send_message() is async and returns a plain string.
    """

    def __init__(self, api_key: str = "", system_message: str = ""):
        self._api_key = api_key
        self._system_message = system_message
        self._model_name = "gemini-2.5-flash"
        self._generation_config = {}
        self._model = None  # lazily created

    def with_model(self, model_name: str) -> "LlmChat":
        self._model_name = model_name
        self._model = None
        return self

    def with_params(self, temperature: Optional[float] = None, **kwargs) -> "LlmChat":
        """Set generation parameters (temperature, top_p, top_k, max_output_tokens)."""
        if temperature is not None:
            self._generation_config["temperature"] = temperature
        self._generation_config.update({k: v for k, v in kwargs.items() if v is not None})
        self._model = None
        return self

    def _ensure_model(self):
        if self._model is None:
            if self._api_key:
                genai.configure(api_key=self._api_key)
            self._model = genai.GenerativeModel(
                model_name=self._model_name,
                system_instruction=self._system_message or None,
                generation_config=self._generation_config or None,
            )
        return self._model

    async def send_message(self, text: str) -> str:
        """Send one prompt and return the response text. The SDK call is
        synchronous, so it runs in a worker thread."""
        model = self._ensure_model()
        response = await asyncio.to_thread(model.generate_content, text)
        return response.text
