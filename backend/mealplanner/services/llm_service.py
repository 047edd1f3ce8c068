import asyncio
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# LangChain Imports
from langchain_core.messages import HumanMessage
from langchain_ollama import ChatOllama
from langchain_openai import ChatOpenAI

# Langfuse SDK - @observe decorator for LLM tracing
from langfuse import get_client, observe

from mealplanner.config import (
    LLM_API_KEY,
    LLM_MAX_OUTPUT_TOKENS,
    LLM_MODEL as OVERRIDE_MODEL,
    LLM_PROVIDER,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
    OLLAMA_URL,
)
from mealplanner.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)

LANGFUSE_ENABLED = bool(os.getenv("LANGFUSE_PUBLIC_KEY") and os.getenv("LANGFUSE_SECRET_KEY"))
langfuse_client = get_client() if LANGFUSE_ENABLED else None

# Determine Model Name based on Provider
# If LLM_MODEL is set in env, it overrides everything.
DEFAULT_MODELS = {
    "ollama": "gpt-oss:120b-cloud",
    "openrouter": "google/gemini-2.5-flash",
    "openai": "gpt-4o",
    "gemini": "gemini-2.5-flash",
}

MODEL_NAME = OVERRIDE_MODEL if OVERRIDE_MODEL else DEFAULT_MODELS.get(LLM_PROVIDER, "gpt-4o-mini")

# Base URLs for OpenAI-compatible providers
PROVIDER_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": None,  # Uses default OpenAI URL
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai/",
}


class FinishStatus(str, Enum):
    STOP = "stop"
    TRUNCATED = "truncated"
    BLOCKED = "blocked"


# Provider finish reasons, lowercased. OpenAI-compatible APIs report
# stop/length/content_filter, Ollama reports done_reason, Gemini native
# reports STOP/MAX_TOKENS/SAFETY/...
STOP_REASONS = {"stop", "end_turn", "finish_reason_stop", "eos"}
BLOCKED_REASONS = {
    "content_filter",
    "safety",
    "recitation",
    "prohibited_content",
    "blocklist",
    "spii",
    "image_safety",
}


@dataclass
class ModelResponse:
    text: str
    finish_status: FinishStatus
    raw_finish_reason: Optional[str] = None


def normalize_finish_reason(reason: Optional[str]) -> FinishStatus:
    """
    Maps a provider finish reason onto STOP / TRUNCATED / BLOCKED.
    A missing reason is a normal stop; any other unknown reason is treated
    as a cut-short response, never as success.
    """
    if not reason:
        return FinishStatus.STOP
    value = str(reason).strip().lower()
    if value in STOP_REASONS:
        return FinishStatus.STOP
    if value in BLOCKED_REASONS:
        return FinishStatus.BLOCKED
    return FinishStatus.TRUNCATED


def is_configured() -> bool:
    return LLM_PROVIDER == "ollama" or bool(LLM_API_KEY)


def get_llm(temperature: float = LLM_TEMPERATURE, max_tokens: int = LLM_MAX_OUTPUT_TOKENS, json_mode: bool = False):
    """
    Factory function to get a configured LangChain Chat Model instance.
    Supports: Ollama (Local), OpenRouter, OpenAI, Gemini (OpenAI-compatible endpoint)
    """

    # 1. Ollama (Local)
    if LLM_PROVIDER == "ollama":
        return ChatOllama(
            base_url=OLLAMA_URL,
            model=MODEL_NAME,
            temperature=temperature,
            num_predict=max_tokens,
            format="json" if json_mode else "",
        )

    # 2. OpenAI Compatible (OpenRouter, OpenAI, Gemini)
    if LLM_PROVIDER in PROVIDER_URLS:
        model_kwargs = {}
        if json_mode:
            model_kwargs["response_format"] = {"type": "json_object"}

        return ChatOpenAI(
            model=MODEL_NAME,
            api_key=LLM_API_KEY,
            base_url=PROVIDER_URLS.get(LLM_PROVIDER),
            temperature=temperature,
            max_tokens=max_tokens,
            model_kwargs=model_kwargs,
            max_retries=0,
        )

    # 3. Fallback / Unknown
    logger.warning(f"[LLM Service] Unknown provider '{LLM_PROVIDER}'. Defaulting to Ollama.")
    return ChatOllama(
        base_url=OLLAMA_URL,
        model=MODEL_NAME,
        temperature=temperature,
        num_predict=max_tokens,
    )


def _message_text(content: Any) -> str:
    # Some providers return a list of content parts instead of a string
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return ""


def _finish_reason(metadata: dict) -> Optional[str]:
    return metadata.get("finish_reason") or metadata.get("done_reason") or metadata.get("stop_reason")


def _token_usage(response) -> tuple:
    usage = getattr(response, "usage_metadata", None) or {}
    input_tokens = usage.get("input_tokens") or 0
    output_tokens = usage.get("output_tokens") or 0

    if input_tokens == 0 and output_tokens == 0:
        metadata = response.response_metadata or {}
        # Ollama returns tokens directly in metadata, not in nested 'usage'
        input_tokens = metadata.get("prompt_eval_count") or 0
        output_tokens = metadata.get("eval_count") or 0
        if input_tokens == 0 and output_tokens == 0:
            nested = metadata.get("token_usage") or metadata.get("usage") or {}
            input_tokens = nested.get("prompt_tokens") or nested.get("input_tokens") or 0
            output_tokens = nested.get("completion_tokens") or nested.get("output_tokens") or 0

    return input_tokens, output_tokens


@observe(name="invoke_model", as_type="generation")
async def invoke_model(
    prompt: str,
    *,
    temperature: float = LLM_TEMPERATURE,
    max_tokens: int = LLM_MAX_OUTPUT_TOKENS,
    timeout: float = LLM_TIMEOUT_SECONDS,
    llm=None,
) -> ModelResponse:
    """
    Sends one prompt to the model and returns its text with a normalized
    finish status. The timeout applies to this call alone; a timeout or any
    transport/provider error surfaces as UpstreamUnavailable.
    """
    if llm is None:
        if not is_configured():
            logger.error(f"[LLM Service] Missing API key for provider {LLM_PROVIDER}")
            raise UpstreamUnavailable("Meal generation is temporarily unavailable.", status_code=503)
        llm = get_llm(temperature=temperature, max_tokens=max_tokens, json_mode=True)

    logger.info(f"[LLM Service] Calling Model (JSON): {MODEL_NAME}")

    try:
        response = await asyncio.wait_for(llm.ainvoke([HumanMessage(content=prompt)]), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"[LLM Service] Model call timed out after {timeout}s")
        raise UpstreamUnavailable() from e
    except Exception as e:
        logger.error(f"[LLM Service] Model call failed: {e}")
        raise UpstreamUnavailable() from e

    metadata = response.response_metadata or {}
    raw_reason = _finish_reason(metadata)
    text = _message_text(response.content)

    input_tokens, output_tokens = _token_usage(response)
    logger.info(
        f"[LLM Stats] Input: {input_tokens}, Output: {output_tokens}, "
        f"finish_reason={raw_reason}, length={len(text)}"
    )

    # Send token usage to Langfuse with proper format for cost calculation
    if LANGFUSE_ENABLED and langfuse_client:
        try:
            langfuse_client.update_current_generation(
                model=MODEL_NAME,
                usage_details={
                    "input": input_tokens,
                    "output": output_tokens,
                    "total": input_tokens + output_tokens,
                },
                model_parameters={"temperature": temperature, "max_tokens": max_tokens},
                metadata={"finish_reason": raw_reason},
            )
        except Exception as e:
            logger.warning(f"[Langfuse] Failed to update generation: {e}")

    return ModelResponse(text=text, finish_status=normalize_finish_reason(raw_reason), raw_finish_reason=raw_reason)
