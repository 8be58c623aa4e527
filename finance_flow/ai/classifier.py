"""Remote category classification and transaction summaries over an LLMClient."""
from __future__ import annotations

import json
import logging
import re
from typing import Iterable, List, Mapping, Sequence

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from finance_flow.ai import LLMClient
from finance_flow.ai.errors import LLMResponseError, NoCategoryMatchError
from finance_flow.core.models import Transaction
from finance_flow.core.taxonomy import DEFAULT_TAXONOMY, Taxonomy

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_CONFIDENCE = 0.5

_FENCE_RX = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S | re.I)


class RemoteCategory(BaseModel):
    """Validated shape of a classification reply."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: str
    sub_category: str | None = Field(
        default=None,
        validation_alias=AliasChoices("subCategory", "sub_category", "subcategory"),
    )
    confidence: float = DEFAULT_REMOTE_CONFIDENCE

    @field_validator("category")
    @classmethod
    def _category_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("category must not be empty")
        return value

    @field_validator("sub_category", mode="before")
    @classmethod
    def _blank_sub_is_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if value is None:
            return DEFAULT_REMOTE_CONFIDENCE
        value = float(value)
        if value != value:  # NaN
            return DEFAULT_REMOTE_CONFIDENCE
        return min(1.0, max(0.0, value))


def parse_remote_category(text: str) -> RemoteCategory:
    """Parse and validate a JSON classification reply."""
    body = (text or "").strip()
    fenced = _FENCE_RX.match(body)
    if fenced:
        body = fenced.group(1)
    if not body:
        raise LLMResponseError("Empty classification response")
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise LLMResponseError(f"Classification response is not JSON: {body[:200]!r}") from exc
    if isinstance(payload, list) and payload:
        payload = payload[0]
    if not isinstance(payload, dict):
        raise LLMResponseError(f"Classification response is not an object: {payload!r}")
    try:
        return RemoteCategory.model_validate(payload)
    except ValidationError as exc:
        raise LLMResponseError(f"Classification response failed validation: {exc}") from exc


def best_match(
    candidate: str,
    allowed: Sequence[str],
    aliases: Mapping[str, Iterable[str]] | None = None,
) -> str | None:
    """
    Reconcile a free-form category name against the allowed list.

    1. exact case-insensitive match;
    2. first allowed name that contains the candidate or is contained in it;
    3. first allowed name with an alias equal to, or a whole phrase of, the candidate.
    """
    text = (candidate or "").strip().lower()
    if not text:
        return None

    for name in allowed:
        if name.lower() == text:
            return name

    for name in allowed:
        lowered = name.lower()
        if lowered in text or text in lowered:
            return name

    for name in allowed:
        for alias in (aliases or {}).get(name, ()):
            alias = alias.strip().lower()
            if not alias:
                continue
            if alias == text or re.search(rf"\b{re.escape(alias)}\b", text):
                return name
    return None


def _tx_to_line(tx: Transaction) -> str:
    sub = f" / {tx.sub_category}" if tx.sub_category else ""
    return (
        f"{tx.date.date().isoformat()} | {tx.type.value} | {tx.category}{sub} | "
        f"{tx.description} | {tx.amount:.2f}"
    )


class RemoteClassifier:
    """Adapter between the categorization engine and a remote model."""

    def __init__(self, client: LLMClient, taxonomy: Taxonomy = DEFAULT_TAXONOMY):
        self.client = client
        self.taxonomy = taxonomy

    def build_classification_messages(self, description: str, allowed: Sequence[str]) -> List[dict]:
        return [
            {
                "role": "system",
                "content": (
                    "You categorize personal finance transactions. Answer with a JSON object "
                    'of the form {"category": str, "subCategory": str, "confidence": number}. '
                    "category must be exactly one of the allowed categories; subCategory is a "
                    "short free-text refinement; confidence is between 0 and 1."
                ),
            },
            {
                "role": "user",
                "content": (
                    f"Allowed categories: {', '.join(allowed)}\n"
                    f"Transaction description: \"{description}\""
                ),
            },
        ]

    def build_summary_messages(self, transactions: Sequence[Transaction]) -> List[dict]:
        lines = [_tx_to_line(tx) for tx in transactions]
        return [
            {
                "role": "system",
                "content": (
                    "You are an expert, friendly and direct financial advisor. Give at most "
                    "three short, motivating tips to improve the user's finances."
                ),
            },
            {
                "role": "user",
                "content": "Transactions (date | type | category | description | amount):\n" + "\n".join(lines),
            },
        ]

    async def classify_remote(self, description: str, allowed_categories: Sequence[str]) -> RemoteCategory:
        """
        Ask the remote model for a category and reconcile it against
        ``allowed_categories``. The returned category is always one of them.

        Raises an :class:`~finance_flow.ai.errors.LLMError` subclass on any
        failure, including :class:`NoCategoryMatchError`.
        """
        messages = self.build_classification_messages(description, allowed_categories)
        raw = await self.client.chat(messages, json_mode=True)
        answer = parse_remote_category(raw)
        matched = best_match(
            answer.category,
            allowed_categories,
            {name: self.taxonomy.aliases_for(name) for name in allowed_categories},
        )
        if matched is None:
            raise NoCategoryMatchError(
                f"Remote category '{answer.category}' matches none of {list(allowed_categories)}"
            )
        logger.debug("Remote category '%s' reconciled to '%s'", answer.category, matched)
        return answer.model_copy(update={"category": matched})

    async def summarize(self, transactions: Sequence[Transaction]) -> str:
        text = await self.client.chat(self.build_summary_messages(transactions))
        if not text.strip():
            raise LLMResponseError("Empty advice response")
        return text.strip()
