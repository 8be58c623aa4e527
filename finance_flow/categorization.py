# finance_flow/categorization.py
from __future__ import annotations

import logging
from typing import Mapping

from finance_flow.ai import LLMClient, get_timeout, get_tiers_from_env
from finance_flow.ai.classifier import RemoteClassifier
from finance_flow.ai.errors import LLMError
from finance_flow.core.categorizer import (
    EXPENSE_RULES,
    INCOME_RULES,
    RULE_CONFIDENCE,
    KeywordClassifier,
    rules_from_config,
)
from finance_flow.core.models import CategorizationResult, TransactionType
from finance_flow.core.taxonomy import DEFAULT_TAXONOMY, Taxonomy, taxonomy_from_config

logger = logging.getLogger(__name__)


def _coerce_type(tx_type) -> TransactionType:
    if isinstance(tx_type, TransactionType):
        return tx_type
    try:
        return TransactionType(str(tx_type).strip().upper())
    except ValueError:
        logger.warning("Unknown transaction type %r; treating it as EXPENSE", tx_type)
        return TransactionType.EXPENSE


class Categorizer:
    """
    Layered categorization: keyword rules first, the remote model only for
    descriptions the rules could not place, and the rules' fallback bucket
    whenever the remote path is unavailable or fails.
    """

    def __init__(
        self,
        classifier: KeywordClassifier | None = None,
        remote: RemoteClassifier | None = None,
        taxonomy: Taxonomy | None = None,
    ):
        self.taxonomy = taxonomy or (classifier.taxonomy if classifier else DEFAULT_TAXONOMY)
        self.classifier = classifier or KeywordClassifier(taxonomy=self.taxonomy)
        self.remote = remote

    async def categorize(self, description: str, tx_type) -> CategorizationResult:
        kind = _coerce_type(tx_type)
        is_income = kind == TransactionType.INCOME
        try:
            local = self.classifier.classify(description, is_income)
        except Exception:
            logger.exception("Keyword classification failed for %r", description)
            local = self.classifier.fallback(is_income)

        if local.confidence == RULE_CONFIDENCE:
            return local
        if self.remote is None or not (description or "").strip():
            return local

        allowed = self.taxonomy.categories_for(kind)
        try:
            answer = await self.remote.classify_remote(description, allowed)
        except LLMError as err:
            logger.info("Remote categorization unavailable (%s); using '%s'", err, local.category)
            return local
        except Exception:
            logger.exception("Unexpected remote categorization failure")
            return local

        if answer.category not in allowed:
            return local
        return CategorizationResult(
            category=answer.category,
            icon=self.taxonomy.icon_for(answer.category),
            confidence=answer.confidence,
            sub_category=answer.sub_category,
        )


def build_remote_classifier(config: Mapping | None = None, taxonomy: Taxonomy | None = None) -> RemoteClassifier | None:
    """Return a RemoteClassifier, or None when no provider has credentials."""
    settings = (config or {}).get("llm") or {}
    try:
        tiers = get_tiers_from_env(settings)
        timeout = get_timeout(settings)
    except ValueError as e:
        logger.warning("Invalid LLM settings (%s); remote categorization disabled", e)
        return None
    if not tiers:
        return None
    client = LLMClient(tiers=tiers, timeout=timeout)
    return RemoteClassifier(client, taxonomy or DEFAULT_TAXONOMY)


def build_categorizer(config: Mapping | None = None) -> Categorizer:
    """Wire configured keyword rules, taxonomy and (if configured) the remote model."""
    config = config or {}
    taxonomy = taxonomy_from_config(config.get("taxonomy"))
    extra_expense, extra_income = rules_from_config(config.get("categories"))
    # built-in rules only for categories the (possibly custom) taxonomy still has
    builtin_expense = tuple(r for r in EXPENSE_RULES if taxonomy.is_allowed(r.category, TransactionType.EXPENSE))
    builtin_income = tuple(r for r in INCOME_RULES if taxonomy.is_allowed(r.category, TransactionType.INCOME))
    classifier = KeywordClassifier(
        expense_rules=extra_expense + builtin_expense,
        income_rules=extra_income + builtin_income,
        taxonomy=taxonomy,
    )
    return Categorizer(classifier, build_remote_classifier(config, taxonomy), taxonomy)
