import logging
import math
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Sequence

from finance_flow.ai.errors import LLMError
from finance_flow.categorization import build_remote_classifier
from finance_flow.core.models import Transaction

logger = logging.getLogger(__name__)

NEED_MORE_DATA_MESSAGE = (
    "Add a few more transactions to receive personalised savings advice."
)
ADVISOR_UNAVAILABLE_MESSAGE = (
    "Sorry, there was a problem reaching your AI financial advisor. Please try again later."
)

DEFAULT_MIN_TRANSACTIONS = 5
DEFAULT_SAMPLE_SIZE = 50


def _is_usable(tx: Transaction) -> bool:
    return (
        isinstance(tx.date, datetime)
        and isinstance(tx.amount, (int, float))
        and math.isfinite(tx.amount)
    )


class BaseAIOutput(ABC):
    """Composable layer for selecting input and shaping the remote reply."""

    @abstractmethod
    def select(self, transactions: Sequence[Transaction]) -> List[Transaction]:
        """Return the transactions that are sent to the model."""

    def post_process(self, response: str) -> str:
        return response.strip()

    @abstractmethod
    async def generate(self, transactions: Sequence[Transaction], remote) -> str:
        """Return the final text for the user."""


class AdviceReport(BaseAIOutput):
    """
    Short financial advice built from a bounded sample of recent activity.

    Below ``min_transactions`` the model is not called at all. Remote failures
    turn into a static apology; this method never raises.
    """

    def __init__(self, min_transactions: int = DEFAULT_MIN_TRANSACTIONS, sample_size: int = DEFAULT_SAMPLE_SIZE):
        self.min_transactions = min_transactions
        self.sample_size = sample_size

    def select(self, transactions: Sequence[Transaction]) -> List[Transaction]:
        usable = [tx for tx in transactions if _is_usable(tx)]
        usable.sort(key=lambda tx: tx.date, reverse=True)
        return usable[: self.sample_size]

    async def generate(self, transactions: Sequence[Transaction], remote) -> str:
        sample = self.select(transactions)
        if len(sample) < self.min_transactions:
            return NEED_MORE_DATA_MESSAGE
        if remote is None:
            logger.info("No remote advisor configured; returning static message")
            return ADVISOR_UNAVAILABLE_MESSAGE
        try:
            out = await remote.summarize(sample)
        except LLMError as e:
            logger.warning("Advice request failed: %s", e)
            return ADVISOR_UNAVAILABLE_MESSAGE
        except Exception:
            logger.exception("Unexpected failure while requesting advice")
            return ADVISOR_UNAVAILABLE_MESSAGE
        text = self.post_process(out or "")
        return text or ADVISOR_UNAVAILABLE_MESSAGE


async def summarize_advice(
    transactions: Sequence[Transaction],
    remote=None,
    min_transactions: int = DEFAULT_MIN_TRANSACTIONS,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    config=None,
) -> str:
    """Convenience wrapper returning advice text."""
    if remote is None and len(transactions) >= min_transactions:
        remote = build_remote_classifier(config)
    report = AdviceReport(min_transactions=min_transactions, sample_size=sample_size)
    return await report.generate(transactions, remote)
