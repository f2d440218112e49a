import os
import json
import logging
import threading
from typing import Optional, Dict, Any, List
from openai import OpenAI

logger = logging.getLogger(__name__)

LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT = float(os.getenv("LLM_TIMEOUT", "30"))

_client: Optional[OpenAI] = None
_client_lock = threading.Lock()


class LLMGenerationError(Exception):
    """Raised when the LLM fails to generate a response."""
    pass


class LLMJSONParseError(Exception):
    """Raised when the LLM response cannot be parsed as JSON."""
    pass


def get_client() -> OpenAI:
    """
    OpenAI client, or any OpenAI-compatible server (vLLM, Ollama)
    when LOCAL_LLM_URL is set.
    """
    global _client
    if _client is None:
        with _client_lock:
            if _client is None:
                base_url = os.getenv("LOCAL_LLM_URL")
                api_key = os.getenv("OPENAI_API_KEY")
                if base_url:
                    _client = OpenAI(
                        api_key=api_key or "local",
                        base_url=base_url,
                        max_retries=2,
                    )
                else:
                    if not api_key:
                        raise ValueError("OPENAI_API_KEY environment variable is not set")
                    _client = OpenAI(api_key=api_key, max_retries=2)
    return _client


def _extract_json(content: str) -> Dict[str, Any]:
    # Local models sometimes wrap the object in prose or code fences
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end <= start:
        raise json.JSONDecodeError("No JSON object found", content, 0)
    return json.loads(content[start:end + 1])


def generate_json_response(
    prompt: str,
    model: str = LLM_MODEL,
    temperature: float = 0.3,
    system_prompt: str = "",
) -> Dict[str, Any]:
    """
    Generates a JSON response. Enforces JSON mode.
    Raises:
        LLMGenerationError: If the API call fails.
        LLMJSONParseError: If the response is not valid JSON.
    """
    content = ""
    try:
        client = get_client()
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=1000,
            response_format={"type": "json_object"},
            timeout=LLM_TIMEOUT,
        )

        if not response.choices or not response.choices[0].message.content:
            logger.error("LLM returned empty response or no content")
            raise LLMGenerationError("LLM returned empty response")

        content = response.choices[0].message.content
        return _extract_json(content)

    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse LLM JSON response: {e}. Content: {content[:500]}")
        raise LLMJSONParseError(f"Failed to parse JSON from LLM response: {e}") from e
    except (LLMGenerationError, LLMJSONParseError):
        raise
    except Exception as e:
        logger.error(f"LLM JSON Generation Failed: {e}", exc_info=True)
        raise LLMGenerationError(f"Failed to generate JSON response: {e}") from e
