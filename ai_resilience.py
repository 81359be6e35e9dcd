"""AI Resilience Layer — Circuit Breaker, Cost Tracking, Structured Calls.

Provides generate_structured(), the single entry point for content
generation: one request per call, a JSON result constrained by a schema,
circuit breaking per provider, and cost/latency logging. Callers own retries;
there are none here.
"""

from __future__ import annotations

import json
import logging
import os
import threading
import time
from dataclasses import dataclass

from errors import GenerationError

logger = logging.getLogger(__name__)


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        if provider not in self._providers:
            self._providers[provider] = _ProviderState()
        return self._providers[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "closed":
                return False
            if state.state == "open":
                elapsed = time.time() - state.last_failure_time
                if elapsed >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            # half_open: allow attempt
            return False

    def get_state(self, provider: str) -> str:
        with self._lock:
            return self._get_state(provider).state

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()


_circuit_breaker = CircuitBreaker()


# ── Cost Tracker ────────────────────────────────────────────

# Approximate pricing per 1M tokens (input + output averaged)
_MODEL_PRICING: dict[str, float] = {
    "gemini-2.5-flash": 0.3,
    "gemini-2.0-flash": 0.075,
    "gpt-4o": 2.5,
    "gpt-4o-mini": 0.15,
}


class CostTracker:
    """Estimates tokens from character count and applies model-specific pricing."""

    @staticmethod
    def estimate_tokens(text: str) -> int:
        """Rough estimate: 1 token ~ 4 characters."""
        return max(1, len(text) // 4)

    @staticmethod
    def track_call(model: str, input_text: str, output_text: str, latency_ms: int) -> dict:
        input_tokens = CostTracker.estimate_tokens(input_text)
        output_tokens = CostTracker.estimate_tokens(output_text)
        total_tokens = input_tokens + output_tokens

        price_per_million = _MODEL_PRICING.get(model, 1.0)
        cost_usd = (total_tokens / 1_000_000) * price_per_million

        return {
            "input_tokens_est": input_tokens,
            "output_tokens_est": output_tokens,
            "total_tokens_est": total_tokens,
            "cost_estimate_usd": round(cost_usd, 6),
            "model": model,
            "latency_ms": latency_ms,
        }


# ── Schema translation ──────────────────────────────────────

def to_json_schema(schema: dict) -> dict:
    """Gemini-style schema (upper-case types) to lower-case JSON Schema."""
    out: dict = {}
    for key, value in schema.items():
        if key == "type" and isinstance(value, str):
            out[key] = value.lower()
        elif key == "properties":
            out[key] = {name: to_json_schema(sub) for name, sub in value.items()}
        elif key == "items":
            out[key] = to_json_schema(value)
        else:
            out[key] = value
    return out


# ── Provider calls ──────────────────────────────────────────

def _do_call(provider: str, model: str, contents: list, schema: dict | None) -> str:
    """Execute the actual LLM API call and return the raw response text."""
    if provider == "gemini":
        import google.generativeai as genai
        genai.configure(api_key=os.getenv("GOOGLE_API_KEY", ""))
        m = genai.GenerativeModel(model)
        config = None
        if schema is not None:
            config = genai.GenerationConfig(
                response_mime_type="application/json",
                response_schema=schema,
            )
        response = m.generate_content(contents, generation_config=config)
        return response.text

    elif provider == "openai":
        from openai import OpenAI
        text_parts = [c for c in contents if isinstance(c, str)]
        if len(text_parts) != len(contents):
            raise ValueError("The openai provider only accepts text prompts")
        client = OpenAI(api_key=os.getenv("OPENAI_API_KEY", ""))
        kwargs: dict = {
            "model": model,
            "messages": [{"role": "user", "content": "\n\n".join(text_parts)}],
        }
        if schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "result", "schema": to_json_schema(schema)},
            }
        response = client.chat.completions.create(**kwargs)
        return response.choices[0].message.content or ""

    else:
        raise ValueError(f"Unknown provider: {provider}")


def _call(provider: str, model: str, contents: list, schema: dict | None) -> str:
    if _circuit_breaker.is_open(provider):
        raise GenerationError("The AI service is temporarily unavailable. Try again shortly.")

    start = time.time()
    try:
        text = _do_call(provider, model, contents, schema)
    except Exception as exc:
        _circuit_breaker.record_failure(provider)
        logger.warning("LLM call failed (provider=%s model=%s): %s", provider, model, exc)
        raise GenerationError(f"AI request failed: {exc}") from exc

    latency_ms = int((time.time() - start) * 1000)
    _circuit_breaker.record_success(provider)

    input_text = "".join(c for c in contents if isinstance(c, str))
    metrics = CostTracker.track_call(model, input_text, text or "", latency_ms)
    logger.info(
        "LLM call provider=%s model=%s tokens~%d cost~$%.6f latency=%dms",
        provider, model, metrics["total_tokens_est"], metrics["cost_estimate_usd"], latency_ms,
    )
    return text or ""


def generate_structured(provider: str, model: str, prompt: str | list, schema: dict) -> dict:
    """Single structured request; returns the decoded JSON object.

    Raises GenerationError on transport failure, an open circuit, or a
    response that is not a JSON object. Field-level validation is the
    caller's job.
    """
    contents = prompt if isinstance(prompt, list) else [prompt]
    text = _call(provider, model, contents, schema)
    try:
        data = json.loads(text.strip())
    except (json.JSONDecodeError, AttributeError) as exc:
        raise GenerationError("The AI returned a response that is not valid JSON.") from exc
    if not isinstance(data, dict):
        raise GenerationError("The AI returned an unexpected response shape.")
    return data


def generate_text(provider: str, model: str, contents: list) -> str:
    """Single free-text request (used for audio transcription)."""
    return _call(provider, model, contents, None).strip()


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker
