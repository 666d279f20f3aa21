"""Completion-service client for broad-category enhancement.

When the resolver lands on a category that is too broad to be useful
(Food:Fruit, Electronics, Clothing, ...), this service asks an
Ollama-compatible chat endpoint for one more level of detail.

Features:
- Ollama integration with configurable model (localhost, LAN, or remote)
- Response caching (24h by default) keyed by description, vendor and business
- Fails open: timeouts, HTTP errors, malformed JSON and low confidence all
  return None so the caller keeps its original category

Privacy Constraints (non-negotiable):
- Never log prompts or raw item descriptions at INFO level
- Remote endpoints: auth header support, no PII in logs
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

import httpx

from receipt_ledger.accounts.cache import Clock, TTLCache
from receipt_ledger.spark_ai.prompts import PROMPT_VERSION, EnhancementPrompt

if TYPE_CHECKING:
    from receipt_ledger.config import LLMConfig

logger = logging.getLogger(__name__)

MIN_CATEGORY_LEVELS = 2
MAX_CATEGORY_LEVELS = 4

_SEGMENT = re.compile(r"^[A-Z][A-Za-z0-9]*$")


class EnhancementError(Exception):
    """The completion service could not produce a usable category."""


@dataclass
class CategorySuggestion:
    """Result of a category enhancement."""

    category: str
    confidence: float
    reason: str
    model: str
    from_cache: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "category": self.category,
            "confidence": self.confidence,
            "reason": self.reason,
            "model": self.model,
            "from_cache": self.from_cache,
        }


def is_valid_category(category: str) -> bool:
    """2-4 colon-separated PascalCase segments."""
    segments = category.split(":")
    if not MIN_CATEGORY_LEVELS <= len(segments) <= MAX_CATEGORY_LEVELS:
        return False
    return all(_SEGMENT.match(segment) for segment in segments)


class CategoryEnhancer:
    """Refines broad categories through an external completion service.

    LLM opt-in control: config.enabled is the master switch and this
    service is the only place that checks it.
    """

    def __init__(
        self,
        config: LLMConfig,
        client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the enhancer.

        Args:
            config: Completion service configuration.
            client: Optional preconfigured client (tests inject a MockTransport).
            clock: Optional monotonic clock for the response cache.
        """
        self.config = config
        self._prompt = EnhancementPrompt()
        self._cache: TTLCache[CategorySuggestion] = TTLCache(
            config.cache_ttl_hours * 3600, clock=clock
        )

        if client is not None:
            self._client = client
            self._owns_client = False
            return

        headers = {}
        if config.auth_header:
            # Support formats: "Bearer token" or "Custom-Header: value"
            if ":" in config.auth_header:
                key, value = config.auth_header.split(":", 1)
                headers[key.strip()] = value.strip()
            else:
                headers["Authorization"] = config.auth_header

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=headers,
        )
        self._owns_client = True

    @property
    def is_enabled(self) -> bool:
        return self.config.enabled

    @staticmethod
    def cache_key(description: str, vendor: str | None, business: str | None) -> str:
        """Normalized description + vendor + business."""
        return "|".join(
            [
                PROMPT_VERSION,
                description.strip().lower(),
                (vendor or "").strip().lower(),
                business or "Personal",
            ]
        )

    async def enhance(
        self,
        description: str,
        current_category: str,
        vendor: str | None = None,
        business: str | None = None,
    ) -> CategorySuggestion | None:
        """Ask for a more specific category.

        Args:
            description: Item description.
            current_category: The broad category, e.g. "Food:Fruit".
            vendor: Optional vendor name.
            business: Business context label.

        Returns:
            CategorySuggestion accepted at config.min_confidence or above,
            otherwise None (the caller keeps current_category).
        """
        if not self.is_enabled:
            return None

        key = self.cache_key(description, vendor, business)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Enhancement cache hit for %s", current_category)
            return replace(cached, from_cache=True)

        try:
            suggestion = await self._request_suggestion(
                description, current_category, vendor, business
            )
        except EnhancementError as e:
            logger.warning("Category enhancement failed, keeping %s: %s", current_category, e)
            return None

        if suggestion.confidence < self.config.min_confidence:
            logger.warning(
                "Low enhancement confidence (%.2f) for %s, keeping original",
                suggestion.confidence,
                current_category,
            )
            return None

        self._cache.set(key, suggestion)
        logger.debug(
            "Enhanced %s -> %s (confidence %.2f)",
            current_category,
            suggestion.category,
            suggestion.confidence,
        )
        return suggestion

    async def _request_suggestion(
        self,
        description: str,
        current_category: str,
        vendor: str | None,
        business: str | None,
    ) -> CategorySuggestion:
        user_message = self._prompt.format_user_message(
            description, current_category, vendor, business
        )
        content = await self._call_ollama(self._prompt.system_prompt, user_message)

        try:
            data = self._parse_json_response(content)
        except json.JSONDecodeError as e:
            raise EnhancementError("malformed JSON response") from e

        category = data.get("category")
        if not isinstance(category, str) or not category.strip():
            raise EnhancementError("response has no category")
        category = category.strip()
        if not is_valid_category(category):
            raise EnhancementError(f"category {category!r} is not a 2-4 level path")

        try:
            confidence = float(data.get("confidence", 0.5))
        except (TypeError, ValueError) as e:
            raise EnhancementError("confidence is not a number") from e

        return CategorySuggestion(
            category=category,
            confidence=confidence,
            reason=str(data.get("reasoning") or data.get("reason") or ""),
            model=self.config.model,
        )

    async def _call_ollama(self, system_prompt: str, user_message: str) -> str:
        """Call the chat endpoint and return the message content.

        Never logs prompts or raw content at INFO level (privacy constraint).

        Raises:
            EnhancementError: On timeout, HTTP error, or unreadable response.
        """
        url = f"{self.config.base_url}/api/chat"
        payload = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "stream": False,
            "format": "json",
        }
        logger.debug("Calling model %s at %s", self.config.model, self.config.base_url)

        try:
            response = await self._client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
            content = data.get("message", {}).get("content", "")
        except httpx.TimeoutException as e:
            logger.warning("Completion request timed out after %ds", self.config.timeout_seconds)
            raise EnhancementError("timeout") from e
        except httpx.HTTPStatusError as e:
            logger.error(
                "Completion API error %s for model '%s' at %s",
                e.response.status_code,
                self.config.model,
                self.config.base_url,
            )
            raise EnhancementError(f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Completion request failed: %s (URL: %s)", e, self.config.base_url)
            raise EnhancementError("request failed") from e
        except (ValueError, AttributeError) as e:
            raise EnhancementError("response body is not a chat message") from e

        logger.debug("Model %s returned %d chars", self.config.model, len(content))
        return content

    def _parse_json_response(self, content: str) -> dict:
        """Parse JSON from LLM response with robust handling of malformed responses.

        Handles:
        - Markdown code blocks (```json ... ```)
        - Leading/trailing whitespace
        - Extracts JSON from mixed text responses
        - Trailing commas and unquoted keys

        Raises:
            json.JSONDecodeError: If content cannot be parsed as valid JSON.
        """
        if not content:
            raise json.JSONDecodeError("Empty response", "", 0)

        content = content.strip()

        # Remove markdown code blocks
        if content.startswith("```json"):
            content = content[7:]
        elif content.startswith("```"):
            content = content[3:]
        if content.endswith("```"):
            content = content[:-3]
        content = content.strip()

        try:
            parsed = json.loads(content)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        # Outermost { ... } block inside surrounding prose
        json_match = re.search(r"\{[^{}]*(?:\{[^{}]*\}[^{}]*)*\}", content, re.DOTALL)
        if json_match:
            try:
                return json.loads(json_match.group())
            except json.JSONDecodeError:
                content = json_match.group()

        # Trailing commas, then unquoted keys
        cleaned = re.sub(r",\s*([}\]])", r"\1", content)
        cleaned = re.sub(r"(\{|,)\s*([a-zA-Z_][a-zA-Z0-9_]*)\s*:", r'\1"\2":', cleaned)
        try:
            parsed = json.loads(cleaned)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

        # Last resort: pull the two fields we need
        result = {}
        cat_match = re.search(r'"?category"?\s*:\s*"([^"]+)"', content)
        if cat_match:
            result["category"] = cat_match.group(1)
            conf_match = re.search(r'"?confidence"?\s*:\s*([0-9.]+)', content)
            if conf_match:
                result["confidence"] = conf_match.group(1)
            logger.debug("Extracted partial data from malformed response: %s", result)
            return result

        raise json.JSONDecodeError(
            f"Could not parse JSON from response: {content[:200]}...", content, 0
        )

    def cache_stats(self) -> dict[str, int]:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()

    async def aclose(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> CategoryEnhancer:
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()
