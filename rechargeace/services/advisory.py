# =============================================
# File: rechargeace/services/advisory.py
# Purpose: Optional LLM advisor that writes friendlier reasoning for value plans
# =============================================
from __future__ import annotations
import json
import os
from typing import Any, Dict, List, Optional, Protocol, Sequence

from loguru import logger

from rechargeace.services.models import Plan, Preference, ValuePlan
from rechargeace.utils.policy import env_flag
from rechargeace.utils.prompting import build_advisory_messages

_OPENAI_AVAILABLE = False
try:
    import openai
    from openai import OpenAI  # OpenAI Python SDK v1
    _OPENAI_AVAILABLE = True
except Exception:
    openai = None

DEFAULT_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
DEFAULT_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.2"))
MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "600"))
TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_SECONDS", "4"))


class AdvisoryError(RuntimeError):
    """The advisor could not produce usable output; retrying will not help."""


class AdvisoryUnavailable(AdvisoryError):
    """Transient: upstream busy/unreachable. Safe to retry after a short delay."""


class Advisor(Protocol):
    def enrich(
        self,
        preference: Preference,
        baseline: Plan,
        candidates: Sequence[ValuePlan],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Return {"valueForMoneyPlans": [{"planName": str, "reasoning": str}, ...]}.
        `timeout` is the seconds left before the caller's deadline (None: no deadline).
        """
        ...


def _is_transient(exc: Exception) -> bool:
    if openai is None:
        return False
    if isinstance(exc, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
        return True
    status = getattr(exc, "status_code", None)
    return isinstance(status, int) and (status == 429 or status >= 500)


def _parse_llm_json(text: str) -> Dict[str, Any]:
    """
    Extract the {"valueForMoneyPlans": [...]} object from the model output.
    Tolerant to small wrappers around the JSON.
    """
    start = (text or "").find("{")
    end = (text or "").rfind("}")
    if start == -1 or end <= start:
        raise AdvisoryError("advisor returned no JSON object")
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise AdvisoryError(f"advisor returned malformed JSON: {e}") from e
    plans = data.get("valueForMoneyPlans") if isinstance(data, dict) else None
    if not isinstance(plans, list):
        raise AdvisoryError("advisor JSON lacks a valueForMoneyPlans list")
    items: List[Dict[str, Any]] = [p for p in plans if isinstance(p, dict)]
    return {"valueForMoneyPlans": items}


class OpenAIAdvisor:
    """
    Advisor backed by OpenAI chat completions in JSON mode.
    Exactly one HTTP request per enrich(): SDK-level retries are switched off so the
    recommender's retry loop is the only one.
    """

    def __init__(self, client=None, model: str = DEFAULT_MODEL, timeout_s: float = TIMEOUT_S) -> None:
        if client is None:
            client = OpenAI(max_retries=0)
        elif hasattr(client, "with_options"):
            client = client.with_options(max_retries=0)
        self._client = client
        self.model = model
        self.timeout_s = timeout_s

    def enrich(
        self,
        preference: Preference,
        baseline: Plan,
        candidates: Sequence[ValuePlan],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        messages = build_advisory_messages(preference, baseline, candidates)
        timeout_s = self.timeout_s if timeout is None else max(0.0, min(self.timeout_s, timeout))
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                temperature=DEFAULT_TEMPERATURE,
                max_tokens=MAX_TOKENS,
                messages=messages,
                timeout=timeout_s,
            )
        except Exception as e:
            if _is_transient(e):
                raise AdvisoryUnavailable(str(e)) from e
            raise AdvisoryError(str(e)) from e
        text = (resp.choices[0].message.content or "").strip()
        return _parse_llm_json(text)


def get_advisor() -> Optional[Advisor]:
    """
    Build the advisor only when explicitly enabled and usable.
    The engine is complete without one.
    """
    if not env_flag("ADVISORY_ENABLED", False):
        return None
    if not _OPENAI_AVAILABLE or not os.getenv("OPENAI_API_KEY"):
        logger.info("[advisory] enabled but OpenAI SDK/API key missing; using local reasoning only")
        return None
    return OpenAIAdvisor()
