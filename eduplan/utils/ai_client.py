# utils/ai_client.py
import asyncio
import json
import logging
import re
from typing import Any, Callable, Optional

import httpx
import openai

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

GEMINI_HOST = "generativelanguage.googleapis.com"


class AIClientError(Exception):
    """The provider could not be reached or answered with an error."""


class AIDataIntegrityError(AIClientError):
    """The provider answered, but not with data we can use."""


async def _fetch_gemini(prompt: str, api_url: str, api_key: str, client: httpx.AsyncClient) -> str:
    payload = {"contents": [{"parts": [{"text": prompt}]}]}
    resp = await client.post(api_url, params={"key": api_key}, json=payload)
    if resp.status_code != 200:
        raise AIClientError(f"AI provider returned status {resp.status_code}: {resp.text}")

    try:
        data = resp.json()
    except ValueError:
        raise AIDataIntegrityError("AI provider response was not valid JSON")
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        raise AIDataIntegrityError("AI provider response had no text candidate")


async def _fetch_openai_like(prompt: str, api_url: str, api_key: str, model: str, client: httpx.AsyncClient) -> str:
    sdk = openai.AsyncOpenAI(api_key=api_key, base_url=api_url, http_client=client, max_retries=0)
    try:
        response = await sdk.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.7,
        )
    except openai.APIStatusError as e:
        raise AIClientError(f"AI provider returned status {e.status_code}: {e.message}")
    except openai.APIError as e:
        raise AIClientError(f"AI provider request failed: {e}")
    if not response.choices:
        raise AIDataIntegrityError("AI provider response had no choices")
    return response.choices[0].message.content or ""


async def fetch_completion(
    prompt: str,
    *,
    api_url: str,
    api_key: str,
    model: str,
    timeout: float = 120.0,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Send one prompt to the configured provider and return its raw text."""
    if not api_key:
        raise AIClientError("AI_API_KEY is not set")

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(timeout=timeout)
    try:
        # Detect provider based on URL
        if GEMINI_HOST in api_url:
            return await _fetch_gemini(prompt, api_url, api_key, client)
        return await _fetch_openai_like(prompt, api_url, api_key, model, client)
    except httpx.RequestError as e:
        raise AIClientError(f"Could not reach AI provider: {e}")
    finally:
        if owns_client:
            await client.aclose()


def cleanup_ai_text(text):
    """Removes common Markdown artifacts from AI-generated text."""
    if not isinstance(text, str):
        return text
    # Remove bolding (**) and italics (*)
    text = re.sub(r'\*\*(.*?)\*\*', r'\1', text)
    text = re.sub(r'\*(.*?)\*', r'\1', text)
    # Remove markdown headings (###, ##, #)
    text = re.sub(r'^\s*#+\s*', '', text, flags=re.MULTILINE)
    # Standardize list-like lines into simple paragraphs
    text = re.sub(r'^\s*[-*]\s+', '', text, flags=re.MULTILINE)
    return text.strip()


def extract_json_from_text(text: str) -> Optional[Any]:
    """
    Try to extract a JSON object or array from a text blob.
    First, attempt to parse the whole string. If that fails, look inside a ```json
    fence, then for the outermost {...} or [...] block.
    """
    text = (text or "").strip()
    candidates = [text]

    fenced = re.search(r"```(?:json)?\s*(.*?)```", text, re.DOTALL)
    if fenced:
        candidates.append(fenced.group(1).strip())
    for pattern in (r"\{.*\}", r"\[.*\]"):
        match = re.search(pattern, text, re.DOTALL)
        if match:
            candidates.append(match.group(0))

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    logger.warning("Failed to extract any valid JSON from the AI response.")
    return None


async def call_ai_model(
    prompt: str,
    *,
    api_url: str,
    api_key: str,
    schema_parser: Optional[Callable[[Any], Any]] = None,
    parse_json: bool = True,
    max_retries: int = 0,
    backoff_base: float = 1.0,
    model: str = "gpt-4o-mini",
    timeout: float = 120.0,
    client: Optional[httpx.AsyncClient] = None,
) -> Any:
    """
    Call the AI provider and return the parsed JSON (validated by schema_parser if given),
    or the raw text when parse_json is False.

    Errors surface as AIClientError (transport / provider) or AIDataIntegrityError
    (unusable payload). Retries only happen when max_retries > 0.
    """
    last_exc = None
    for attempt in range(1, max_retries + 2):
        try:
            logger.info("AI call attempt %d", attempt)
            raw_text = await fetch_completion(
                prompt, api_url=api_url, api_key=api_key, model=model, timeout=timeout, client=client
            )
            logger.debug("AI raw response (truncated): %s", raw_text[:1000])

            if not parse_json:
                return raw_text.strip()

            parsed = extract_json_from_text(raw_text)
            if parsed is None:
                raise AIDataIntegrityError("AI data integrity check failed: response was not valid JSON.")

            if schema_parser:
                try:
                    return schema_parser(parsed)
                except Exception as e:
                    logger.warning("Schema parser rejected AI output: %s", e)
                    raise AIDataIntegrityError(f"AI data integrity check failed: {e}")

            return parsed

        except AIClientError as e:
            logger.error("AI call failed on attempt %d: %s", attempt, e)
            last_exc = e
            if attempt <= max_retries:
                await asyncio.sleep(backoff_base * (2 ** (attempt - 1)))

    raise last_exc
