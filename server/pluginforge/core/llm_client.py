# pluginforge/core/llm_client.py
import os
import json
import time
import asyncio
import logging
from typing import Any, Dict, Optional, Type

from pydantic import BaseModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from pluginforge.utils.config import (
    DEFAULT_MODEL,
    GEMINI_API_KEY_ENV,
    LLM_RETRIES,
    LOG_DIR,
    TIMEOUT,
)

os.makedirs(LOG_DIR, exist_ok=True)
logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please try again later."
PAYMENT_REQUIRED_MESSAGE = "Payment required. Please add credits to your workspace."


class LLMError(RuntimeError):
    """Raised when the model call fails; status_code mirrors the gateway's HTTP status."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code


def _classify(exc: Exception) -> LLMError:
    text = str(exc)
    code = getattr(exc, "status_code", None) or getattr(exc, "code", None)
    if code == 429 or "429" in text or "RESOURCE_EXHAUSTED" in text:
        return LLMError(RATE_LIMIT_MESSAGE, 429)
    if code == 402 or "402" in text or "billing" in text.lower():
        return LLMError(PAYMENT_REQUIRED_MESSAGE, 402)
    return LLMError(f"AI Gateway error: {text}", 500)


# -------------------------
# LLM init
# -------------------------
def resolve_model_name(model: Optional[str]) -> str:
    # clients send gateway-style ids like "google/gemini-2.5-flash"
    name = (model or DEFAULT_MODEL).strip()
    if "/" in name:
        name = name.split("/", 1)[1]
    return name


def get_llm(model: Optional[str] = None, temperature: float = 0.5):
    api_key = os.getenv(GEMINI_API_KEY_ENV)
    if not api_key:
        raise LLMError(f"Please set {GEMINI_API_KEY_ENV} environment variable for Gemini access.")
    if "GOOGLE_API_KEY" not in os.environ:
        os.environ["GOOGLE_API_KEY"] = api_key
    return ChatGoogleGenerativeAI(
        model=resolve_model_name(model),
        temperature=temperature,
        timeout=TIMEOUT,
    )


def _save_debug_log(prefix: str, payload: Dict[str, Any]):
    fname = f"{int(time.time())}_{prefix}.json"
    path = os.path.join(LOG_DIR, fname)
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2, ensure_ascii=False, default=str)
    except OSError:
        logger.exception("Failed to write debug log")


def _message_text(result: Any) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        # gemini may return content parts
        parts = []
        for part in content:
            if isinstance(part, dict):
                parts.append(part.get("text", ""))
            else:
                parts.append(str(part))
        return "".join(parts)
    return str(content)


async def call_text_generation(system_prompt: str,
                               user_prompt: str,
                               model: Optional[str] = None,
                               temperature: float = 0.5,
                               debug: bool = False) -> str:
    """
    Single chat completion returning the raw assistant text.
    The generation flow parses the text itself so it can fall back on malformed JSON.
    """
    llm = get_llm(model, temperature)
    start_ts = time.time()
    try:
        result = await llm.ainvoke([SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)])
    except Exception as e:
        logger.exception("LLM text generation failed")
        _save_debug_log("llm_error_text", {"prompt": user_prompt, "error": repr(e)})
        raise _classify(e) from e

    content = _message_text(result)
    logger.info("AI response received in %.1fs, length: %d", time.time() - start_ts, len(content))
    if debug:
        _save_debug_log("llm_text", {"system": system_prompt, "prompt": user_prompt, "raw_result": content})
    return content


async def call_structured_generation(prompt: str,
                                     structured_model: Type[BaseModel],
                                     model: Optional[str] = None,
                                     temperature: float = 0.3,
                                     max_retries: int = LLM_RETRIES,
                                     debug: bool = False) -> Dict[str, Any]:
    """
    Call Gemini with with_structured_output(structured_model) and return a plain dict.
    Retries with a linear backoff; raises LLMError after the last attempt.
    """
    llm = get_llm(model, temperature)
    structured_callable = llm.with_structured_output(structured_model, method="json_mode")

    last_exc: Optional[Exception] = None
    total_attempts = 1 + max_retries
    for attempt in range(1, total_attempts + 1):
        start_ts = time.time()
        try:
            result = await structured_callable.ainvoke(prompt)
            duration = time.time() - start_ts
            logger.debug("Structured LLM attempt %d finished in %.1fs", attempt, duration)
            if debug:
                _save_debug_log(f"llm_attempt_{attempt}", {"prompt": prompt, "raw_result": str(result)})

            if isinstance(result, BaseModel):
                return result.model_dump()
            if isinstance(result, dict):
                return result
            return json.loads(str(result))
        except Exception as e:
            last_exc = e
            logger.exception("LLM attempt %d failed: %s", attempt, e)
            _save_debug_log(f"llm_error_attempt_{attempt}", {"prompt": prompt, "error": repr(e)})
            if attempt < total_attempts:
                await asyncio.sleep(1 * attempt)

    raise _classify(last_exc) from last_exc
