"""Sensitive field classification.

Two strategies decide which field names in a document are sensitive:

- Rule-based (always available): a field is sensitive if its name
  case-insensitively contains any entry of the sensitive field table.
- External (optional): the field names are handed to an external
  classifier, typically a local language model, and its answer is
  validated against the names it was given.

The two strategies produce results with different match strictness:
rule results match keys by substring, external results by exact
(case-insensitive) name.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from har_scrubber.patterns import load_sensitive_fields

if TYPE_CHECKING:
    from collections.abc import Iterable

    from har_scrubber.pipeline.capabilities import ExternalClassifier

_LOGGER = logging.getLogger(__name__)

MatchMode = Literal["substring", "exact"]

# Instructions handed to the external classifier with every request
CLASSIFIER_POLICY = """\
You are a privacy and security expert. From the list of JSON field names
you are given, identify ONLY the fields that hold truly sensitive data:
personal identifiers (names, contact details, government IDs, birth
dates), financial data (card numbers, CVV, bank accounts), health data
(medical records, insurance numbers, conditions), and authentication
data (passwords, secrets, private keys, tokens, session identifiers).

Rules:
1. Never mark container object names (user, profile, account, payment,
   settings, preferences, metrics). Mark only the leaf fields inside them.
2. Never mark technical metadata (status, version, environment, feature
   flags, timestamps, counts), request, transaction or correlation IDs,
   or public business data (product, category and plan names).
3. Use exactly the field names you were given, separated by commas.
   Do not add fields that are not in the list. Do not add explanations.
"""


@dataclass
class ClassificationResult:
    """Field names deemed sensitive for one document.

    Attributes:
        fields: Sensitive field names (short names, not paths)
        match: "substring" for rule-based results, "exact" for external ones
    """

    fields: frozenset[str]
    match: MatchMode = "substring"
    _lowered: frozenset[str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._lowered = frozenset(name.lower() for name in self.fields)

    def matches(self, key: str) -> bool:
        """Check whether an object key should be redacted under this result.

        Example:
            >>> ClassificationResult(frozenset({"token"})).matches("accessToken")
            True
            >>> ClassificationResult(frozenset({"token"}), "exact").matches("accessToken")
            False
        """
        lower = key.lower()
        if self.match == "exact":
            return lower in self._lowered
        return any(name in lower for name in self._lowered)

    def __bool__(self) -> bool:
        return bool(self.fields)


class FieldClassifier:
    """Classify field names as sensitive, optionally via an external classifier.

    Args:
        external: Optional external classifier capability
        timeout: Seconds to wait for the external classifier
        gate: Optional semaphore bounding concurrent external calls
        custom_patterns: Optional path to custom patterns file
    """

    def __init__(
        self,
        external: ExternalClassifier | None = None,
        *,
        timeout: float | None = 30.0,
        gate: asyncio.Semaphore | None = None,
        custom_patterns: str | None = None,
    ) -> None:
        self.external = external
        self.timeout = timeout
        self.gate = gate
        self.rules: tuple[str, ...] = tuple(
            load_sensitive_fields(custom_patterns).get("fields", {}).get("patterns", [])
        )
        self._rules_lowered = tuple(rule.lower() for rule in self.rules)

    def is_sensitive_field(self, name: str) -> bool:
        """Check a field name against the rule table (substring, case-insensitive).

        Example:
            >>> FieldClassifier().is_sensitive_field("loginPassword")
            True
            >>> FieldClassifier().is_sensitive_field("theme")
            False
        """
        lower = name.lower()
        return any(rule in lower for rule in self._rules_lowered)

    def baseline(self) -> ClassificationResult:
        """Result that matches every key the rule table considers sensitive."""
        return ClassificationResult(frozenset(self.rules), "substring")

    def classify_with_rules(self, names: Iterable[str]) -> ClassificationResult:
        """Rule-based classification of a set of field names."""
        return ClassificationResult(
            frozenset(name for name in names if self.is_sensitive_field(name)),
            "substring",
        )

    async def classify(self, names: list[str]) -> ClassificationResult:
        """Classify field names, preferring the external classifier.

        Falls back to the rule table when no external classifier is
        configured, or when it raises, times out, or returns nothing
        usable. External failures are logged and never propagated.

        Args:
            names: De-duplicated field names flattened from a schema

        Returns:
            ClassificationResult for the document
        """
        external = self.external
        if external is None or not names:
            return self.classify_with_rules(names)

        try:
            answer = await self._ask_external(external, names)
        except Exception as e:
            _LOGGER.warning("External classification failed, using rules: %s", str(e) or type(e).__name__)
            return self.classify_with_rules(names)

        accepted = self._validate(answer, names)
        if not accepted:
            _LOGGER.info("External classifier returned no usable fields, using rules")
            return self.classify_with_rules(names)

        _LOGGER.debug("External classifier marked %d of %d fields", len(accepted), len(names))
        return ClassificationResult(frozenset(accepted), "exact")

    async def _ask_external(self, external: ExternalClassifier, names: list[str]) -> list[str]:
        if self.gate is None:
            return await asyncio.wait_for(external.classify(list(names)), self.timeout)
        async with self.gate:
            return await asyncio.wait_for(external.classify(list(names)), self.timeout)

    @staticmethod
    def _validate(answer: object, names: list[str]) -> list[str]:
        """Keep only answers that name one of the input fields.

        Answers are matched case-insensitively and mapped back to the
        input spelling.
        """
        if not isinstance(answer, (list, tuple, set, frozenset)):
            return []
        by_lower = {name.lower(): name for name in names}
        accepted: dict[str, None] = {}
        for item in answer:
            if not isinstance(item, str):
                continue
            original = by_lower.get(item.strip().lower())
            if original is None:
                _LOGGER.debug("Dropping unknown field from external classifier: %r", item)
                continue
            accepted.setdefault(original, None)
        return list(accepted)
