import json
import os
import urllib.request
import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Dict, List, Mapping, Protocol

import anyio
import google.generativeai as genai
from huggingface_hub import InferenceClient

from finance_flow.ai.errors import (
    LLMError,
    LLMNotConfiguredError,
    LLMResponseError,
    LLMTimeoutError,
    classify_error,
    is_transient,
)

# -----------------------------------------------------------------------------
# Configure basic debug logging (caller can override)
# -----------------------------------------------------------------------------
logging.basicConfig(level=os.getenv("LLM_DEBUG", "INFO").upper())
logger = logging.getLogger(__name__)

_OLLAMA_URL = "http://localhost:11434/api/chat"
_OPENAI_URL = "https://api.openai.com/v1/chat/completions"

DEFAULT_TIMEOUT = 20.0
DEFAULT_PROVIDER = "gemini"

# provider -> (primary model, lower-capability fallback model or None)
DEFAULT_MODELS: Dict[str, tuple] = {
    "gemini": ("gemini-2.5-flash", "gemini-2.0-flash-lite"),
    "openai": ("gpt-4o-mini", "gpt-3.5-turbo"),
    "huggingface": ("Qwen/Qwen3-32B", "meta-llama/Llama-3.1-8B-Instruct"),
    "ollama": ("phi3:mini", None),
}


class LLMProvider(Protocol):
    """A minimal protocol all concrete providers must implement."""

    def generate(self, messages: List[dict], json_mode: bool = False) -> str:  # noqa: D401 – keep simple signature
        """Return the model reply given a list-of-dicts chat history."""


# -----------------------------------------------------------------------------
# Google Gemini provider
# -----------------------------------------------------------------------------

@dataclass
class GeminiProvider:
    model: str
    api_key: str
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        genai.configure(api_key=self.api_key)

    def generate(self, messages: List[dict], json_mode: bool = False) -> str:
        system = "\n".join(m["content"] for m in messages if m["role"] == "system")
        prompt = "\n\n".join(m["content"] for m in messages if m["role"] != "system")
        config = {"temperature": 0.1}
        if json_mode:
            config["response_mime_type"] = "application/json"
        model = genai.GenerativeModel(
            self.model,
            system_instruction=system or None,
            generation_config=config,
        )
        logger.debug("Gemini ▶ %s – prompt: %s", self.model, prompt)
        response = model.generate_content(prompt, request_options={"timeout": self.timeout})
        text = response.text or ""
        logger.debug("Gemini ◀ %s", text)
        return text.strip()


# -----------------------------------------------------------------------------
# Hugging Face Inference API provider
# -----------------------------------------------------------------------------

@dataclass
class HuggingFaceProvider:
    model: str
    token: str | None = None
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        self._client = InferenceClient(provider="cerebras", api_key=self.token, timeout=self.timeout)

    def generate(self, messages: List[dict], json_mode: bool = False) -> str:
        out = self._client.chat_completion(messages=messages, model=self.model)
        return (out.choices[0].message.content or "").strip()


# -----------------------------------------------------------------------------
# OpenAI Chat Completions provider
# -----------------------------------------------------------------------------

@dataclass
class OpenAIProvider:
    model: str
    api_key: str
    timeout: float = DEFAULT_TIMEOUT

    def generate(self, messages: List[dict], json_mode: bool = False) -> str:
        payload = {"model": self.model, "messages": messages}
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        data = json.dumps(payload).encode()
        req = urllib.request.Request(_OPENAI_URL, data=data, method="POST")
        req.add_header("Content-Type", "application/json")
        req.add_header("Authorization", f"Bearer {self.api_key}")
        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            resp_data = json.load(resp)
        return (resp_data["choices"][0]["message"]["content"] or "").strip()


# -----------------------------------------------------------------------------
# Ollama provider with robust parsing and debug logging
# -----------------------------------------------------------------------------

@dataclass
class OllamaProvider:
    model: str
    url: str = _OLLAMA_URL
    timeout: float = DEFAULT_TIMEOUT

    def _post(self, payload: dict) -> dict:
        """Low‑level helper: POST JSON and return parsed JSON with debug logs."""
        data = json.dumps(payload).encode()
        logger.debug("Ollama ▶ POST %s – payload: %s", self.url, payload)
        req = urllib.request.Request(self.url, data=data, method="POST")
        req.add_header("Content-Type", "application/json")

        with urllib.request.urlopen(req, timeout=self.timeout) as resp:
            raw = resp.read().decode()
            logger.debug("Ollama ◀ %s", raw)
            return json.loads(raw)

    def generate(self, messages: List[dict], json_mode: bool = False) -> str:
        payload = {"model": self.model, "messages": messages, "stream": False}
        if json_mode:
            payload["format"] = "json"
        resp_data = self._post(payload)

        # Ollama /api/chat returns either {'message': str, 'done': bool}
        # or {'message': {'role': 'assistant', 'content': str, ...}, 'done': bool}
        msg = resp_data.get("message", "")
        if isinstance(msg, dict):
            msg = msg.get("content", "")
        if not isinstance(msg, str):
            raise LLMResponseError(f"Unexpected Ollama response format: {resp_data}")
        return msg.strip()


# -----------------------------------------------------------------------------
# Tiered client
# -----------------------------------------------------------------------------

@dataclass
class ProviderTier:
    name: str
    provider: LLMProvider


@dataclass
class LLMClient:
    """
    Sends chat requests through an ordered list of provider tiers.

    Each attempt runs in a worker thread under a hard timeout. Transient
    failures (transport, quota, timeout) move on to the next tier; any other
    failure is raised straight away.
    """
    provider: LLMProvider | None = None
    tiers: List[ProviderTier] = field(default_factory=list)
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if self.provider is not None:
            self.tiers = [ProviderTier("primary", self.provider)] + list(self.tiers)
        elif not self.tiers:
            self.tiers = get_tiers_from_env()
        if not self.tiers:
            raise LLMNotConfiguredError("No LLM provider is configured")

    async def _attempt(self, tier: ProviderTier, messages: List[dict], json_mode: bool) -> str:
        call = partial(tier.provider.generate, messages, json_mode=json_mode)
        try:
            with anyio.fail_after(self.timeout):
                text = await anyio.to_thread.run_sync(call, abandon_on_cancel=True)
        except TimeoutError:
            raise LLMTimeoutError(f"Tier '{tier.name}' gave no answer within {self.timeout}s") from None
        except Exception as exc:
            raise classify_error(exc) from exc
        if not isinstance(text, str) or not text.strip():
            raise LLMResponseError(f"Tier '{tier.name}' returned an empty response")
        return text.strip()

    async def chat(self, messages: List[dict], json_mode: bool = False) -> str:
        last_error: LLMError | None = None
        for index, tier in enumerate(self.tiers):
            try:
                return await self._attempt(tier, messages, json_mode)
            except LLMError as err:
                last_error = err
                if not is_transient(err):
                    raise
                remaining = len(self.tiers) - index - 1
                logger.warning(
                    "LLM tier '%s' failed (%s); %d tier(s) left", tier.name, err, remaining
                )
        raise last_error


# -----------------------------------------------------------------------------
# Helper utilities
# -----------------------------------------------------------------------------

def _setting(settings: Mapping, env_name: str, key: str, default=None):
    value = os.environ.get(env_name)
    if value is None:
        value = settings.get(key)
    return default if value is None else value


def _build_provider(name: str, model: str, timeout: float) -> LLMProvider | None:
    if name == "gemini":
        api_key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
        if not api_key:
            logger.info("GEMINI_API_KEY not set; remote categorization disabled")
            return None
        return GeminiProvider(model=model, api_key=api_key, timeout=timeout)

    if name == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            logger.info("OPENAI_API_KEY not set; remote categorization disabled")
            return None
        return OpenAIProvider(model=model, api_key=api_key, timeout=timeout)

    if name == "huggingface":
        token = os.environ.get("HF_API_TOKEN")
        if not token:
            logger.info("HF_API_TOKEN not set; remote categorization disabled")
            return None
        return HuggingFaceProvider(model=model, token=token, timeout=timeout)

    if name == "ollama":
        url = os.environ.get("OLLAMA_URL", _OLLAMA_URL)
        return OllamaProvider(model=model, url=url, timeout=timeout)

    raise ValueError(f"Unknown LLM provider '{name}'")


def get_timeout(settings: Mapping | None = None) -> float:
    return float(_setting(settings or {}, "FINANCEFLOW_LLM_TIMEOUT", "timeout", DEFAULT_TIMEOUT))


def get_tiers_from_env(settings: Mapping | None = None) -> List[ProviderTier]:
    """
    Build the ordered provider tiers from the environment, falling back to the
    ``llm`` config section. Returns an empty list when the selected provider
    has no credentials.
    """
    settings = settings or {}
    name = str(_setting(settings, "FINANCEFLOW_LLM_PROVIDER", "provider", DEFAULT_PROVIDER)).lower()
    if name not in DEFAULT_MODELS:
        raise ValueError(f"Unknown LLM provider '{name}'")
    default_model, default_fallback = DEFAULT_MODELS[name]
    model = _setting(settings, "FINANCEFLOW_LLM_MODEL", "model", default_model)
    fallback = _setting(settings, "FINANCEFLOW_LLM_FALLBACK_MODEL", "fallback_model", default_fallback)
    timeout = get_timeout(settings)

    primary = _build_provider(name, model, timeout)
    if primary is None:
        return []
    tiers = [ProviderTier(f"{name}:{model}", primary)]
    if fallback and str(fallback).lower() != "none" and fallback != model:
        tiers.append(ProviderTier(f"{name}:{fallback}", _build_provider(name, fallback, timeout)))
    return tiers
