from __future__ import annotations

import logging

from core.usage import TokenUsage
from models.document_models import DocumentResult, DocumentType

logger = logging.getLogger(__name__)

# USD per token: (input, output, reasoning). Checked in order, first match wins.
_PRICING: list[tuple[tuple[str, ...], tuple[float, float, float]]] = [
    (("gpt-5-mini", "gpt-5-nano"), (0.000025, 0.0002, 0.0002)),
    (("gpt-5",), (0.00005, 0.0004, 0.0004)),
    (("gpt-4-turbo",), (0.00001, 0.00003, 0.0)),
    (("gpt-4",), (0.00003, 0.00006, 0.0)),
    (("llama", "mixtral"), (0.000001, 0.000001, 0.0)),
]
_DEFAULT_RATE = (0.000002, 0.000002, 0.0)


def estimate_cost(model: str | None, usage: TokenUsage) -> float:
    """Rough USD cost of ``usage`` on ``model``."""
    name = (model or "").lower()
    rates = _DEFAULT_RATE
    for prefixes, candidate in _PRICING:
        if any(prefix in name for prefix in prefixes):
            rates = candidate
            break
    input_rate, output_rate, reasoning_rate = rates
    return (
        usage.input_tokens * input_rate
        + usage.output_tokens * output_rate
        + usage.reasoning_tokens * reasoning_rate
    )


class TokenAccountant:
    """Accumulate token usage and cost across the documents of one run."""

    def __init__(self) -> None:
        self.total = TokenUsage()
        self.document_totals: dict[str, TokenUsage] = {}
        self.estimated_cost: float = 0.0

    def record_usage(
        self,
        document_type: DocumentType | str,
        usage: dict[str, int] | TokenUsage | None,
        model: str | None = None,
    ) -> None:
        """Record token usage for a document."""
        name = (
            document_type.value
            if isinstance(document_type, DocumentType)
            else document_type
        )
        if not usage:
            logger.debug("No usage reported for '%s'", name)
            return

        delta = TokenUsage()
        delta.add(usage)
        self.total.add(delta)
        self.document_totals.setdefault(name, TokenUsage()).add(delta)
        self.estimated_cost += estimate_cost(model, delta)
        logger.info(
            "Tokens from '%s': %s in / %s out. Total this run: %s",
            name,
            delta.input_tokens,
            delta.output_tokens,
            self.total.total_tokens,
        )

    def record_result(self, result: DocumentResult) -> None:
        if result.succeeded:
            self.record_usage(result.type, result.usage, result.model)

    def get_document_total(self, document_type: DocumentType | str) -> int:
        """Return accumulated tokens for a document type."""
        name = (
            document_type.value
            if isinstance(document_type, DocumentType)
            else document_type
        )
        usage = self.document_totals.get(name)
        return usage.total_tokens if usage else 0

    def summary(self) -> dict[str, object]:
        return {
            "input_tokens": self.total.input_tokens,
            "output_tokens": self.total.output_tokens,
            "reasoning_tokens": self.total.reasoning_tokens,
            "total_tokens": self.total.total_tokens,
            "estimated_cost_usd": round(self.estimated_cost, 6),
        }
