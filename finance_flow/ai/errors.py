"""
Error taxonomy for remote model calls.

Every exception raised while talking to a provider is mapped onto one of
these classes by :func:`classify_error`. Transient errors let the client move
on to the next provider tier; everything else aborts the call.
"""

import json
import urllib.error


class LLMError(RuntimeError):
    """Base exception for remote model failures. Fatal unless subclassed."""
    transient = False


class LLMNotConfiguredError(LLMError):
    """No credentials or providers available"""


class LLMResponseError(LLMError):
    """The reply was empty, not JSON, or failed schema validation"""


class NoCategoryMatchError(LLMResponseError):
    """The reply named a category that matches nothing in the allowed list"""


class LLMTransportError(LLMError):
    """Network or server-side failure"""
    transient = True


class LLMQuotaError(LLMTransportError):
    """Rate limit or quota exhausted (HTTP 429)"""


class LLMTimeoutError(LLMTransportError):
    """The provider did not answer in time"""


def is_transient(error: BaseException) -> bool:
    return isinstance(error, LLMError) and error.transient


def _status_code(exc: BaseException):
    for candidate in (
        getattr(exc, "status_code", None),
        getattr(getattr(exc, "response", None), "status_code", None),
        getattr(exc, "code", None),
    ):
        if isinstance(candidate, int):
            return candidate
    return None


def classify_error(exc: BaseException) -> LLMError:
    """Map any provider exception onto the LLMError hierarchy."""
    if isinstance(exc, LLMError):
        return exc

    status = _status_code(exc)
    if status == 429:
        return LLMQuotaError(f"Quota or rate limit exceeded: {exc}")
    if status is not None and status >= 500:
        return LLMTransportError(f"Server error {status}: {exc}")
    if status is not None and status >= 400:
        return LLMError(f"Request rejected with status {status}: {exc}")

    if isinstance(exc, TimeoutError):
        return LLMTimeoutError(f"Request timed out: {exc}")
    if isinstance(exc, urllib.error.URLError):
        if isinstance(exc.reason, TimeoutError):
            return LLMTimeoutError(f"Request timed out: {exc.reason}")
        return LLMTransportError(f"Could not reach provider: {exc.reason}")
    if isinstance(exc, (ConnectionError, OSError)):
        return LLMTransportError(f"Connection failed: {exc}")
    if isinstance(exc, (json.JSONDecodeError, KeyError, IndexError, TypeError, ValueError)):
        return LLMResponseError(f"Malformed provider response: {exc}")
    return LLMError(f"Unexpected provider failure: {exc!r}")
