"""LLM provider client: Gemini (cloud) or Ollama (local).

Supports:
  - Plain text generation with a system prompt (call_llm)
  - Image transcription for scanned policy pages (transcribe_image, Gemini only)
  - JSON extraction from model replies (parse_json_payload)

The client is a black box to the rest of the pipeline: it returns model text
or raises an AIProviderError subclass.  Transport errors and 5xx responses are
retried with exponential backoff; 4xx responses are not.
"""

import asyncio
import base64
import logging
import random
import re
import time

import httpx

from coverwise.config import (
    AI_PROVIDER,
    GEMINI_API_KEY,
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    LLM_MAX_RETRIES,
    LLM_TEMPERATURE,
    LLM_TIMEOUT,
    LLM_TOP_P,
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
)
from coverwise.errors import (
    AIProviderError,
    ProviderAuthError,
    ProviderConfigError,
    ProviderQuotaError,
    ProviderTimeoutError,
)
from coverwise.pipeline.evidence import load_json_object

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "ollama")

TRANSCRIBE_PROMPT = (
    "Transcribe all text from this insurance policy page exactly as written. "
    "Keep table rows on one line each. Return plain text only, no commentary."
)


def _resolve_provider(provider: str | None) -> str:
    name = (provider or AI_PROVIDER or "").strip().lower()
    if name not in SUPPORTED_PROVIDERS:
        raise ProviderConfigError(
            f"Unknown AI provider {name!r}",
            {"supported": list(SUPPORTED_PROVIDERS)},
        )
    if name == "gemini" and not GEMINI_API_KEY:
        raise ProviderConfigError("GEMINI_API_KEY is not set")
    return name


# ═══════════════════════════════════════════════════
# HTTP + RETRY
# ═══════════════════════════════════════════════════

async def _post_json(url: str, body: dict, headers: dict | None = None, timeout: float = LLM_TIMEOUT) -> dict:
    # Per-call client, concurrent requests never share a closed client
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.post(url, json=body, headers=headers)
        response.raise_for_status()
        return response.json()


def _map_status_error(e: httpx.HTTPStatusError, label: str) -> AIProviderError:
    status = e.response.status_code
    detail = e.response.text[:300]
    if status in (401, 403):
        return ProviderAuthError(f"[{label}] Provider rejected the API key", {"status": status})
    if status == 429:
        return ProviderQuotaError(f"[{label}] Provider quota exceeded, try again later", {"status": status})
    return AIProviderError(f"[{label}] Provider returned HTTP {status}", {"status": status, "body": detail})


async def _post_with_retries(url: str, body: dict, headers: dict | None, label: str, timeout: float) -> dict:
    last_error: Exception | None = None
    for attempt in range(LLM_MAX_RETRIES):
        if attempt > 0:
            # Exponential backoff with jitter on retries
            backoff = min(2 ** attempt + random.uniform(0, 1), 30)
            logger.warning(f"[{label}] Retry {attempt}/{LLM_MAX_RETRIES - 1} in {backoff:.1f}s after: {last_error}")
            await asyncio.sleep(backoff)

        t0 = time.time()
        try:
            result = await _post_json(url, body, headers=headers, timeout=timeout)
            logger.info(f"[{label}] Response in {time.time() - t0:.1f}s (attempt {attempt + 1})")
            return result
        except httpx.TimeoutException as e:
            last_error = e
        except httpx.HTTPStatusError as e:
            if e.response.status_code < 500:
                raise _map_status_error(e, label) from e
            last_error = e
        except httpx.HTTPError as e:
            last_error = e

    if isinstance(last_error, httpx.TimeoutException):
        raise ProviderTimeoutError(
            f"[{label}] Provider timed out after {LLM_MAX_RETRIES} attempts",
            {"timeout_seconds": timeout},
        ) from last_error
    raise AIProviderError(
        f"[{label}] Provider call failed after {LLM_MAX_RETRIES} attempts: {last_error}",
    ) from last_error


# ═══════════════════════════════════════════════════
# PROVIDERS
# ═══════════════════════════════════════════════════

def _gemini_text(result: dict, label: str) -> str:
    candidates = result.get("candidates") or []
    if not candidates:
        reason = (result.get("promptFeedback") or {}).get("blockReason", "no candidates")
        raise AIProviderError(f"[{label}] Gemini returned no content ({reason})")
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(p.get("text", "") for p in parts if isinstance(p, dict))
    if not text.strip():
        raise AIProviderError(f"[{label}] Gemini returned an empty response")
    return text


async def _call_gemini(parts: list[dict], system_prompt: str, temperature: float, label: str, timeout: float) -> str:
    body = {
        "contents": [{"role": "user", "parts": parts}],
        "generationConfig": {"temperature": temperature, "topP": LLM_TOP_P},
    }
    if system_prompt:
        body["systemInstruction"] = {"parts": [{"text": system_prompt}]}
    url = f"{GEMINI_BASE_URL}/models/{GEMINI_MODEL}:generateContent"
    result = await _post_with_retries(url, body, {"x-goog-api-key": GEMINI_API_KEY}, label, timeout)
    return _gemini_text(result, label)


async def _call_ollama(prompt: str, system_prompt: str, temperature: float, label: str, timeout: float) -> str:
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    messages.append({"role": "user", "content": prompt})
    body = {
        "model": OLLAMA_MODEL,
        "messages": messages,
        "stream": False,
        "think": False,
        "options": {"temperature": temperature, "top_p": LLM_TOP_P},
    }
    result = await _post_with_retries(f"{OLLAMA_BASE_URL}/api/chat", body, None, label, timeout)
    content = (result.get("message") or {}).get("content", "")
    if not content.strip():
        raise AIProviderError(f"[{label}] Ollama returned an empty response")
    return content


async def call_llm(
    prompt: str,
    system_prompt: str = "",
    *,
    temperature: float = LLM_TEMPERATURE,
    task_label: str = "",
    timeout: float | None = None,
    provider: str | None = None,
) -> str:
    """Send one prompt to the configured provider and return the raw model text.

    Args:
        prompt: User prompt text (usually the policy document)
        system_prompt: Instructions for the model
        temperature: 0 for repeatable extraction
        task_label: Label used in log lines
        timeout: Per-request timeout in seconds (defaults to LLM_TIMEOUT)
        provider: Override AI_PROVIDER for this call

    Raises:
        ProviderConfigError, ProviderAuthError, ProviderQuotaError,
        ProviderTimeoutError, AIProviderError
    """
    name = _resolve_provider(provider)
    label = task_label or "LLM"
    timeout = timeout or LLM_TIMEOUT
    logger.info(f"[{label}] Calling {name} ({len(prompt):,} prompt chars)")

    if name == "gemini":
        return await _call_gemini([{"text": prompt}], system_prompt, temperature, label, timeout)
    return await _call_ollama(prompt, system_prompt, temperature, label, timeout)


async def transcribe_image(data: bytes, mime_type: str, *, provider: str | None = None) -> str:
    """Transcribe a scanned policy page to plain text (Gemini only)."""
    name = _resolve_provider(provider)
    if name != "gemini":
        raise ProviderConfigError(f"Image transcription is not supported by provider {name!r}")
    parts = [
        {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(data).decode("ascii")}},
        {"text": TRANSCRIBE_PROMPT},
    ]
    logger.info(f"[Transcribe] Sending {len(data):,} byte {mime_type} image")
    return await _call_gemini(parts, "", LLM_TEMPERATURE, "Transcribe", LLM_TIMEOUT)


def parse_json_payload(text: str) -> dict:
    """Extract the JSON object from a model reply.

    Strips inline <think>...</think> blocks, then ```json fences or surrounding
    prose.  Raises ExtractionFormatError with a preview of the reply.
    """
    if isinstance(text, str):
        text = re.sub(r"<think>.*?</think>", "", text, flags=re.DOTALL)
    return load_json_object(text)


async def check_provider_status() -> dict:
    """Report whether the configured provider looks usable (for the health endpoint)."""
    name = (AI_PROVIDER or "").strip().lower()
    if name == "gemini":
        return {"provider": "gemini", "model": GEMINI_MODEL, "configured": bool(GEMINI_API_KEY)}
    if name != "ollama":
        return {"provider": name, "configured": False, "error": "unknown provider"}

    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(f"{OLLAMA_BASE_URL}/api/tags")
            resp.raise_for_status()
            names = [m.get("name", "") for m in resp.json().get("models", [])]
    except httpx.HTTPError as e:
        return {"provider": "ollama", "model": OLLAMA_MODEL, "configured": False, "error": str(e)}
    return {
        "provider": "ollama",
        "model": OLLAMA_MODEL,
        "configured": any(OLLAMA_MODEL in n for n in names),
    }
