import json
import time

import anyio
import pytest

from finance_flow.ai import LLMClient, ProviderTier, get_tiers_from_env
from finance_flow.ai.classifier import (
    RemoteClassifier,
    best_match,
    parse_remote_category,
)
from finance_flow.ai.errors import (
    LLMError,
    LLMNotConfiguredError,
    LLMQuotaError,
    LLMResponseError,
    LLMTimeoutError,
    NoCategoryMatchError,
    classify_error,
    is_transient,
)
from finance_flow.core.taxonomy import INCOME_CATEGORIES


class DummyProvider:
    def __init__(self, reply):
        self.reply = reply
        self.messages = []

    def generate(self, messages, json_mode=False):
        self.messages.append((messages, json_mode))
        return self.reply


class QuotaExceeded(Exception):
    status_code = 429


class FailingProvider:
    def __init__(self, exc):
        self.exc = exc
        self.calls = 0

    def generate(self, messages, json_mode=False):
        self.calls += 1
        raise self.exc


class SlowProvider:
    def generate(self, messages, json_mode=False):
        time.sleep(0.5)
        return '{"category": "Transport"}'


def test_best_match_exact_is_case_insensitive():
    assert best_match("transport", ["Food", "Transport"]) == "Transport"


def test_best_match_substring_either_way():
    assert best_match("Food", ["Food and Drink", "Transport"]) == "Food and Drink"
    assert best_match("Public Transport costs", ["Food", "Transport"]) == "Transport"


def test_best_match_no_match():
    assert best_match("Comida", ["Food", "Transport"]) is None
    assert best_match("", ["Food"]) is None


def test_best_match_uses_aliases_last():
    aliases = {"Honorarios Profesionales": ["professional fees"]}
    assert best_match("Professional Fees", list(INCOME_CATEGORIES), aliases) == "Honorarios Profesionales"
    assert best_match("Professional Fees", list(INCOME_CATEGORIES)) is None


def test_parse_remote_category_defaults_and_clamps():
    assert parse_remote_category('{"category": "Transport"}').confidence == 0.5
    assert parse_remote_category('{"category": "Transport", "confidence": 7}').confidence == 1.0
    assert parse_remote_category('{"category": "Transport", "confidence": -1}').confidence == 0.0
    parsed = parse_remote_category('```json\n{"category": "Home", "subCategory": "Rent"}\n```')
    assert parsed.sub_category == "Rent"


@pytest.mark.parametrize("reply", ["", "not json", "[]", '{"confidence": 0.3}', '{"category": "  "}'])
def test_parse_remote_category_rejects_bad_replies(reply):
    with pytest.raises(LLMResponseError):
        parse_remote_category(reply)


def test_classify_remote_reconciles_category():
    provider = DummyProvider(json.dumps({"category": "Professional Fees", "subCategory": "Consulting", "confidence": 0.85}))
    remote = RemoteClassifier(LLMClient(provider=provider))

    res = anyio.run(remote.classify_remote, "Quarterly consulting payment", INCOME_CATEGORIES)
    assert res.category == "Honorarios Profesionales"
    assert res.sub_category == "Consulting"
    assert res.confidence == 0.85

    messages, json_mode = provider.messages[0]
    assert json_mode is True
    assert "Quarterly consulting payment" in messages[-1]["content"]
    assert "Honorarios Profesionales" in messages[-1]["content"]


def test_classify_remote_no_match_raises():
    remote = RemoteClassifier(LLMClient(provider=DummyProvider('{"category": "Comida"}')))
    with pytest.raises(NoCategoryMatchError):
        anyio.run(remote.classify_remote, "tacos", ["Food", "Transport"])


def test_quota_error_moves_to_fallback_tier():
    primary = FailingProvider(QuotaExceeded("quota"))
    fallback = DummyProvider("ok")
    client = LLMClient(tiers=[ProviderTier("primary", primary), ProviderTier("fallback", fallback)])

    assert anyio.run(client.chat, [{"role": "user", "content": "hi"}]) == "ok"
    assert primary.calls == 1
    assert len(fallback.messages) == 1


def test_timeout_moves_to_fallback_tier():
    fallback = DummyProvider("fast")
    client = LLMClient(
        tiers=[ProviderTier("slow", SlowProvider()), ProviderTier("fallback", fallback)],
        timeout=0.05,
    )
    assert anyio.run(client.chat, [{"role": "user", "content": "hi"}]) == "fast"


def test_timeout_on_last_tier_raises():
    client = LLMClient(provider=SlowProvider(), timeout=0.05)
    with pytest.raises(LLMTimeoutError):
        anyio.run(client.chat, [{"role": "user", "content": "hi"}])


def test_fatal_error_does_not_try_fallback():
    class BadRequest(Exception):
        status_code = 400

    fallback = DummyProvider("never")
    client = LLMClient(tiers=[ProviderTier("primary", FailingProvider(BadRequest("bad"))), ProviderTier("fallback", fallback)])
    with pytest.raises(LLMError) as info:
        anyio.run(client.chat, [{"role": "user", "content": "hi"}])
    assert not is_transient(info.value)
    assert fallback.messages == []


def test_all_tiers_exhausted_raises_last_error():
    client = LLMClient(tiers=[
        ProviderTier("a", FailingProvider(QuotaExceeded("a"))),
        ProviderTier("b", FailingProvider(QuotaExceeded("b"))),
    ])
    with pytest.raises(LLMQuotaError):
        anyio.run(client.chat, [{"role": "user", "content": "hi"}])


def test_empty_reply_is_a_response_error():
    client = LLMClient(provider=DummyProvider("   "))
    with pytest.raises(LLMResponseError):
        anyio.run(client.chat, [{"role": "user", "content": "hi"}])


def test_classify_error_mapping():
    assert isinstance(classify_error(QuotaExceeded()), LLMQuotaError)
    assert isinstance(classify_error(TimeoutError()), LLMTimeoutError)
    assert is_transient(classify_error(ConnectionResetError()))
    assert isinstance(classify_error(KeyError("choices")), LLMResponseError)


def test_no_credentials_means_no_tiers(monkeypatch):
    for name in ("GEMINI_API_KEY", "API_KEY", "FINANCEFLOW_LLM_PROVIDER"):
        monkeypatch.delenv(name, raising=False)
    assert get_tiers_from_env({"provider": "gemini"}) == []
    with pytest.raises(LLMNotConfiguredError):
        LLMClient()


def test_ollama_tiers_need_no_credentials(monkeypatch):
    monkeypatch.delenv("FINANCEFLOW_LLM_PROVIDER", raising=False)
    monkeypatch.delenv("FINANCEFLOW_LLM_MODEL", raising=False)
    tiers = get_tiers_from_env({"provider": "ollama"})
    assert [t.name for t in tiers] == ["ollama:phi3:mini"]
