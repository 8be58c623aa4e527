import anyio

from finance_flow.ai import LLMClient
from finance_flow.ai.classifier import RemoteClassifier
from finance_flow.ai.errors import LLMQuotaError
from finance_flow.categorization import Categorizer, build_categorizer
from finance_flow.core.models import TransactionType


class SpyRemote:
    def __init__(self, answer=None, exc=None):
        self.answer = answer
        self.exc = exc
        self.calls = []

    async def classify_remote(self, description, allowed_categories):
        self.calls.append((description, tuple(allowed_categories)))
        if self.exc is not None:
            raise self.exc
        return self.answer


class DummyProvider:
    def __init__(self, reply):
        self.reply = reply
        self.calls = 0

    def generate(self, messages, json_mode=False):
        self.calls += 1
        return self.reply


def _clear_credentials(monkeypatch):
    for name in ("GEMINI_API_KEY", "API_KEY", "FINANCEFLOW_LLM_PROVIDER"):
        monkeypatch.delenv(name, raising=False)


def test_rule_match_skips_remote():
    spy = SpyRemote()
    categorizer = Categorizer(remote=spy)
    res = anyio.run(categorizer.categorize, "Uber to airport", TransactionType.EXPENSE)
    assert res.category == "Transport"
    assert res.confidence == 1.0
    assert spy.calls == []


def test_remote_error_returns_local_fallback():
    categorizer = Categorizer(remote=SpyRemote(exc=LLMQuotaError("quota")))
    res = anyio.run(categorizer.categorize, "Quarterly consulting payment", "INCOME")
    assert res.category == "Other Income"
    assert res.confidence == 0.1


def test_unexpected_remote_exception_never_escapes():
    categorizer = Categorizer(remote=SpyRemote(exc=RuntimeError("boom")))
    res = anyio.run(categorizer.categorize, "xyzzy", TransactionType.EXPENSE)
    assert res.category == "Other"


def test_remote_only_sees_categories_of_the_type():
    spy = SpyRemote(exc=LLMQuotaError("quota"))
    anyio.run(Categorizer(remote=spy).categorize, "xyzzy", TransactionType.INCOME)
    assert spy.calls[0][1][-1] == "Other Income"
    assert "Transport" not in spy.calls[0][1]


def test_blank_description_does_not_call_remote():
    spy = SpyRemote()
    res = anyio.run(Categorizer(remote=spy).categorize, "  ", TransactionType.EXPENSE)
    assert res.category == "Other"
    assert spy.calls == []


def test_remote_answer_is_used_end_to_end():
    provider = DummyProvider('{"category": "Professional Fees", "confidence": 0.85}')
    categorizer = Categorizer(remote=RemoteClassifier(LLMClient(provider=provider)))

    res = anyio.run(categorizer.categorize, "Quarterly consulting payment", TransactionType.INCOME)
    assert res.category == "Honorarios Profesionales"
    assert res.icon == "professional"
    assert res.confidence == 0.85
    assert provider.calls == 1

    rule_hit = anyio.run(categorizer.categorize, "Uber ride", TransactionType.EXPENSE)
    assert rule_hit.category == "Transport"
    assert provider.calls == 1


def test_unmatched_remote_answer_falls_back():
    provider = DummyProvider('{"category": "Comida"}')
    categorizer = Categorizer(remote=RemoteClassifier(LLMClient(provider=provider)))
    res = anyio.run(categorizer.categorize, "tacos al pastor", TransactionType.EXPENSE)
    assert res.category == "Other"
    assert res.confidence == 0.1


def test_unknown_type_is_treated_as_expense():
    res = anyio.run(Categorizer().categorize, "Netflix", "refund")
    assert res.category == "Leisure"


def test_build_categorizer_without_credentials_is_local_only(monkeypatch):
    _clear_credentials(monkeypatch)
    categorizer = build_categorizer({})
    assert categorizer.remote is None
    res = anyio.run(categorizer.categorize, "Quarterly consulting payment", TransactionType.INCOME)
    assert (res.category, res.confidence) == ("Other Income", 0.1)


def test_build_categorizer_config_rules_come_first(monkeypatch):
    _clear_credentials(monkeypatch)
    categorizer = build_categorizer({"categories": {"Shopping": ["uber"]}})
    res = anyio.run(categorizer.categorize, "Uber ride", TransactionType.EXPENSE)
    assert res.category == "Shopping"


def test_build_categorizer_with_reduced_taxonomy(monkeypatch):
    _clear_credentials(monkeypatch)
    categorizer = build_categorizer({
        "taxonomy": {
            "expense_categories": ["Transport", "Other"],
            "income_categories": ["Salary", "Other Income"],
        }
    })
    assert anyio.run(categorizer.categorize, "Uber ride", "EXPENSE").category == "Transport"
    assert anyio.run(categorizer.categorize, "Netflix", "EXPENSE").category == "Other"


def test_invalid_llm_settings_disable_remote(monkeypatch):
    _clear_credentials(monkeypatch)
    monkeypatch.setenv("FINANCEFLOW_LLM_PROVIDER", "bogus")
    assert build_categorizer({}).remote is None

    monkeypatch.setenv("FINANCEFLOW_LLM_PROVIDER", "ollama")
    monkeypatch.setenv("FINANCEFLOW_LLM_TIMEOUT", "soon")
    categorizer = build_categorizer({})
    assert categorizer.remote is None
    res = anyio.run(categorizer.categorize, "Uber ride", TransactionType.EXPENSE)
    assert res.category == "Transport"
