"""Optional external capabilities: summarization and intelligent classification.

A capability provider is probed once per batch. The probe selects one of
two variants for the whole batch:

- ``Available``: carries the provider's summarizer and classifier (either
  may be None if the provider only offers one of them).
- ``Unavailable``: no optional stage is attempted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar, Protocol, runtime_checkable

_LOGGER = logging.getLogger(__name__)


@runtime_checkable
class Summarizer(Protocol):
    """Produces a short natural-language annotation for a piece of text."""

    async def summarize(self, text: str) -> str: ...


@runtime_checkable
class ExternalClassifier(Protocol):
    """Returns the subset of field names it considers sensitive."""

    async def classify(self, field_names: list[str]) -> list[str]: ...


class CapabilityProvider(Protocol):
    """Source of optional capabilities, probed once before a batch starts.

    Attributes:
        summarizer: Summarizer offered by the provider, if any
        classifier: External classifier offered by the provider, if any
    """

    summarizer: Summarizer | None
    classifier: ExternalClassifier | None

    async def has_capabilities(self) -> bool: ...


@dataclass(frozen=True)
class Available:
    """Capabilities confirmed by the probe."""

    summarizer: Summarizer | None = None
    classifier: ExternalClassifier | None = None
    available: ClassVar[bool] = True


@dataclass(frozen=True)
class Unavailable:
    """No optional capability; only baseline redaction runs."""

    summarizer: ClassVar[None] = None
    classifier: ClassVar[None] = None
    available: ClassVar[bool] = False


Capabilities = Available | Unavailable


@dataclass
class StaticCapabilities:
    """Provider wrapping already-constructed collaborators.

    Useful for tests and for embedding callers that manage their own
    model sessions.

    Example:
        >>> provider = StaticCapabilities(classifier=my_classifier)  # doctest: +SKIP
    """

    summarizer: Summarizer | None = None
    classifier: ExternalClassifier | None = None

    async def has_capabilities(self) -> bool:
        return self.summarizer is not None or self.classifier is not None


async def probe_capabilities(provider: CapabilityProvider | None) -> Capabilities:
    """Query a provider once and select the capability variant.

    A provider that is missing, reports no capabilities, or raises while
    probing yields ``Unavailable``.

    Args:
        provider: Capability provider, or None

    Returns:
        Available or Unavailable
    """
    if provider is None:
        return Unavailable()

    try:
        ok = await provider.has_capabilities()
    except Exception as e:
        _LOGGER.warning("Capability probe failed, continuing with basic redaction: %s", e)
        return Unavailable()

    if not ok:
        _LOGGER.info("Advanced privacy features are not available, basic redaction will be applied")
        return Unavailable()

    _LOGGER.info(
        "Advanced privacy features available (summarizer: %s, classifier: %s)",
        provider.summarizer is not None,
        provider.classifier is not None,
    )
    return Available(summarizer=provider.summarizer, classifier=provider.classifier)
