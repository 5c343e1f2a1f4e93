import asyncio
import re
from typing import Any, Dict, List, Optional

from groq import AsyncGroq

from content_worker.core.config import settings
from content_worker.core.errors import AuthenticationError, EmptyResponseError, LLMError, classify_llm_error
from content_worker.core.logger import get_logger
from content_worker.core.observability import pipeline_llm_calls_total
from content_worker.services.llms.json_payload import extract_json_payload

logger = get_logger(__name__)

JSON_ONLY_SUFFIX = "\n\nRespond with ONLY a JSON object."
JSON_SCHEMA_SUFFIX = (
    "\n\nRespond with ONLY a JSON object matching this schema. No markdown, no code fences, no extra text."
)
JSON_ARRAY_SUFFIX = "\n\nRespond with ONLY a JSON array. No markdown, no code fences, no extra text."


class GroqService:
    """
    Completion client used by every pipeline stage.

    Wraps the async Groq chat endpoint with text, JSON and vision-JSON helpers.
    Failures leave this class already triaged: AuthenticationError,
    JSONParseError, EmptyResponseError, or the original (retryable) exception.
    """

    def __init__(self, api_key: Optional[str] = None) -> None:
        api_key = api_key or settings.GROQ_API_KEY
        if not api_key:
            raise RuntimeError("Missing GROQ_API_KEY")

        self.client = AsyncGroq(api_key=api_key)

        self.text_model = settings.LLM_TEXT_MODEL
        self.vision_model = settings.LLM_VISION_MODEL
        self.temperature = settings.LLM_TEMPERATURE
        self.max_tokens = settings.LLM_MAX_TOKENS

        # Rate limit retry configuration (HTTP 429 only)
        self.max_retries = settings.LLM_RATE_LIMIT_RETRIES
        self.base_backoff = 1.0
        self.max_backoff = 30.0

    @staticmethod
    def is_available() -> bool:
        return bool(settings.GROQ_API_KEY)

    def _extract_retry_after(self, error_msg: str) -> float | None:
        """Extract retry-after time from error message if available."""
        match = re.search(r"Please try again in ([0-9.]+)s", error_msg)
        if match:
            return float(match.group(1))
        return None

    @staticmethod
    def _is_rate_limited(error: Exception) -> bool:
        return getattr(error, "status_code", None) == 429 or "429" in str(error)

    async def _complete(self, messages: List[Dict[str, Any]], model: str, kind: str, **options: Any) -> str:
        kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        kwargs.update({k: v for k, v in options.items() if v is not None})

        retry_count = 0
        while True:
            try:
                response = await self.client.chat.completions.create(**kwargs)
                text = response.choices[0].message.content or ""
                pipeline_llm_calls_total.labels(kind=kind, outcome="ok").inc()
                return text

            except Exception as e:
                if self._is_rate_limited(e) and retry_count < self.max_retries:
                    retry_after = self._extract_retry_after(str(e))
                    if retry_after:
                        wait_time = min(retry_after, self.max_backoff)
                    else:
                        wait_time = min(self.base_backoff * (2**retry_count), self.max_backoff)
                    logger.warning(
                        f"[GroqService] Rate limit hit. Retrying in {wait_time:.1f}s "
                        f"(attempt {retry_count + 1}/{self.max_retries})"
                    )
                    retry_count += 1
                    await asyncio.sleep(wait_time)
                    continue

                classified = classify_llm_error(e)
                if isinstance(classified, AuthenticationError):
                    pipeline_llm_calls_total.labels(kind=kind, outcome="auth_error").inc()
                    logger.error(f"[GroqService] Credentials rejected by Groq: {e}")
                    raise classified from e

                pipeline_llm_calls_total.labels(kind=kind, outcome="error").inc()
                logger.error(f"[GroqService] Groq call failed: {e}")
                raise

    @staticmethod
    def _build_messages(content: Any, system_instruction: Optional[str]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = []
        if system_instruction:
            messages.append({"role": "system", "content": system_instruction})
        messages.append({"role": "user", "content": content})
        return messages

    @staticmethod
    def _json_prompt(prompt: str, schema: Optional[Dict[str, Any]]) -> str:
        if schema is None:
            return prompt + JSON_ONLY_SUFFIX
        if schema.get("type") == "array":
            return prompt + JSON_ARRAY_SUFFIX
        return prompt + JSON_SCHEMA_SUFFIX

    @staticmethod
    def _response_format(schema: Optional[Dict[str, Any]]) -> Optional[Dict[str, str]]:
        if schema is not None and schema.get("type") == "object":
            return {"type": "json_object"}
        return None

    def _parse(self, raw: str, kind: str) -> Any:
        try:
            return extract_json_payload(raw)
        except LLMError:
            pipeline_llm_calls_total.labels(kind=kind, outcome="parse_error").inc()
            logger.error(f"[GroqService] Could not parse {kind} response: {raw[:300]!r}")
            raise

    async def generate(self, prompt: str, system_instruction: Optional[str] = None) -> str:
        """Plain text completion. Blank completions raise EmptyResponseError."""
        messages = self._build_messages(prompt, system_instruction)
        text = await self._complete(messages, self.text_model, kind="text")
        if not text.strip():
            raise EmptyResponseError("Groq returned empty response")
        return text.strip()

    async def generate_json(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        messages = self._build_messages(self._json_prompt(prompt, schema), system_instruction)
        raw = await self._complete(
            messages,
            self.text_model,
            kind="json",
            response_format=self._response_format(schema),
        )
        return self._parse(raw, "json")

    async def generate_json_with_vision(
        self,
        prompt: str,
        image_url: Optional[str] = None,
        system_instruction: Optional[str] = None,
        schema: Optional[Dict[str, Any]] = None,
    ) -> Any:
        content: List[Dict[str, Any]] = [{"type": "text", "text": self._json_prompt(prompt, schema)}]
        if image_url:
            content.append({"type": "image_url", "image_url": {"url": image_url}})

        messages = self._build_messages(content, system_instruction)
        raw = await self._complete(
            messages,
            self.vision_model,
            kind="vision_json",
            response_format=self._response_format(schema),
        )
        return self._parse(raw, "vision_json")
