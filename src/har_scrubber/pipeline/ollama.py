"""Local language model capabilities backed by Ollama.

Requires the 'llm' optional dependency: pip install har-scrubber[llm]
"""

from __future__ import annotations

import logging
from typing import Any

try:
    import ollama
except ImportError as e:
    raise ImportError("LLM dependencies not installed. Install with: pip install har-scrubber[llm]") from e

from har_scrubber.redaction.classifier import CLASSIFIER_POLICY

_LOGGER = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.2"

SUMMARY_CONTEXT = """\
Summarize the API call attached below.
- Based on the API path and method, derive the purpose of the request.
- Based on the request body, derive the parameters of the request.
- Based on the response body, derive the result of the request.
Answer in at most three sentences.
"""


def _content(response: Any) -> str:
    """Extract the assistant message text from a chat response."""
    content = response["message"]["content"]
    return content.strip() if isinstance(content, str) else ""


class OllamaSummarizer:
    """Summarizer that asks a local model to describe an API call."""

    def __init__(self, client: ollama.AsyncClient, model: str) -> None:
        self.client = client
        self.model = model

    async def summarize(self, text: str) -> str:
        response = await self.client.chat(
            model=self.model,
            messages=[
                {"role": "system", "content": SUMMARY_CONTEXT},
                {"role": "user", "content": text},
            ],
            options={"temperature": 0.2},
        )
        return _content(response)


class OllamaClassifier:
    """External classifier that asks a local model which fields are sensitive."""

    def __init__(self, client: ollama.AsyncClient, model: str) -> None:
        self.client = client
        self.model = model

    async def classify(self, field_names: list[str]) -> list[str]:
        prompt = "From these field names, list only the ones that are DEFINITELY sensitive:\n" + ",".join(field_names)
        response = await self.client.chat(
            model=self.model,
            messages=[
                {"role": "system", "content": CLASSIFIER_POLICY},
                {"role": "user", "content": prompt},
            ],
            options={"temperature": 0},
        )
        raw = _content(response)
        _LOGGER.debug("Raw classifier response: %s", raw)
        return [name.strip() for name in raw.split(",") if name.strip()]


class OllamaCapabilities:
    """Capability provider for a model served by a local Ollama instance.

    Args:
        model: Model name (must already be pulled)
        host: Ollama host URL (default: OLLAMA_HOST or http://localhost:11434)
        client: Pre-built async client (overrides host)
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        host: str | None = None,
        client: ollama.AsyncClient | None = None,
    ) -> None:
        self.model = model
        self.client = client or ollama.AsyncClient(host=host)
        self.summarizer = OllamaSummarizer(self.client, model)
        self.classifier = OllamaClassifier(self.client, model)

    async def has_capabilities(self) -> bool:
        """Check that the model is present on the Ollama server."""
        try:
            await self.client.show(self.model)
        except ollama.ResponseError as e:
            _LOGGER.warning("Ollama model %s not available: %s", self.model, e.error)
            return False
        return True
