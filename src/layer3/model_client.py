"""Generative model adapters used by the report synthesizer."""

from __future__ import annotations

import logging
from typing import List, Protocol

from google import generativeai as genai

LOGGER = logging.getLogger(__name__)


class GenerativeModelClient(Protocol):
    def generate(
        self,
        *,
        model: str,
        instructions: str,
        input_text: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        """Return the model's text output ("" when it produced none)."""
        ...


class GeminiModelClient:
    """Calls Gemini with the report instructions as the system instruction.

    `genai.configure` mutates process-wide state, so it is expected to have
    been called once (see `ClientRegistry`) before this client is used.
    """

    def generate(
        self,
        *,
        model: str,
        instructions: str,
        input_text: str,
        temperature: float,
        max_output_tokens: int,
    ) -> str:
        generative_model = genai.GenerativeModel(model, system_instruction=instructions)
        response = generative_model.generate_content(
            input_text,
            generation_config=genai.GenerationConfig(
                temperature=temperature,
                max_output_tokens=max_output_tokens,
            ),
        )

        finish_reason = None
        candidates = getattr(response, "candidates", None)
        if candidates:
            finish_reason = getattr(candidates[0], "finish_reason", None)

        texts = self._candidate_texts(response)
        if not texts:
            LOGGER.warning("Gemini returned no text (finish_reason=%s).", finish_reason)
            return ""
        return texts[0]

    @staticmethod
    def _candidate_texts(response) -> List[str]:
        texts: List[str] = []
        try:
            text = (getattr(response, "text", "") or "").strip()
        except ValueError:
            # `.text` raises when the candidate was blocked or has no parts.
            text = ""
        if text:
            texts.append(text)
        for candidate in getattr(response, "candidates", []) or []:
            parts = getattr(getattr(candidate, "content", None), "parts", None) or []
            joined = "".join(getattr(part, "text", "") or "" for part in parts).strip()
            if joined:
                texts.append(joined)
        return texts
