"""Text-generation gateway.

One call to the configured provider per ``generate()``. Automatic SDK retries
are disabled: a failed call raises ``GenerationFailed`` and the caller decides
what to do with it.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Any

from visibility.errors import ConfigurationError, GenerationFailed

log = logging.getLogger(__name__)

_SCHEMA_TOOL_NAME = "record_briefs"


def _env_flag(name: str, default: bool) -> bool:
    val = os.environ.get(name)
    if val is None:
        return default
    return val.strip().lower() in ("1", "true", "yes", "on")


class LLMClient:
    """Unified async LLM client supporting Anthropic and OpenAI."""

    def __init__(
        self,
        provider: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        structured_output: bool | None = None,
    ):
        self.provider = provider or os.environ.get("LLM_PROVIDER", "anthropic")
        self.model = model or os.environ.get("LLM_MODEL", "")
        self.timeout = timeout or float(os.environ.get("LLM_TIMEOUT_SECONDS", "120"))
        self.structured_output = (
            structured_output if structured_output is not None
            else _env_flag("LLM_STRUCTURED_OUTPUT", True)
        )
        self._api_key = api_key
        self._base_url = base_url
        self._client: Any = None
        self._init_client()

    def _init_client(self) -> None:
        if self.provider == "anthropic":
            key = self._api_key or os.environ.get("ANTHROPIC_API_KEY")
            if not key:
                raise ConfigurationError("ANTHROPIC_API_KEY environment variable is not set")
            import anthropic
            self.model = self.model or "claude-3-5-sonnet-20240620"
            self._client = anthropic.AsyncAnthropic(api_key=key, max_retries=0, timeout=self.timeout)
        elif self.provider in ("openai", "openai_compatible"):
            key = self._api_key or os.environ.get("OPENAI_API_KEY")
            if not key:
                raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
            import openai
            self.model = self.model or "gpt-4o-mini"
            kwargs: dict[str, Any] = {"api_key": key, "max_retries": 0, "timeout": self.timeout}
            url = self._base_url or os.environ.get("OPENAI_BASE_URL")
            if url:
                kwargs["base_url"] = url
            self._client = openai.AsyncOpenAI(**kwargs)
        else:
            raise ConfigurationError(f"Unknown LLM provider: {self.provider!r}")

    async def generate(
        self,
        prompt: str,
        max_tokens: int,
        *,
        fallback: str = "",
        schema: dict[str, Any] | None = None,
    ) -> str:
        """Send *prompt* as a single user message and return the reply text.

        Args:
            prompt: Prompt text, sent byte-for-byte.
            max_tokens: Upper bound on the reply size.
            fallback: Returned when the reply carries no textual content.
            schema: Object schema with a single array property. When given and
                structured output is enabled, the provider is asked for
                schema-constrained output and the array is returned as JSON text.
        """
        if schema is not None and not self.structured_output:
            schema = None
        log.debug("LLM call: provider=%s model=%s max_tokens=%d", self.provider, self.model, max_tokens)
        if self.provider == "anthropic":
            return await self._generate_anthropic(prompt, max_tokens, fallback, schema)
        return await self._generate_openai(prompt, max_tokens, fallback, schema)

    async def _generate_anthropic(
        self, prompt: str, max_tokens: int, fallback: str, schema: dict[str, Any] | None,
    ) -> str:
        import anthropic

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if schema is not None:
            kwargs["tools"] = [{
                "name": _SCHEMA_TOOL_NAME,
                "description": "Record the generated items.",
                "input_schema": schema,
            }]
            kwargs["tool_choice"] = {"type": "tool", "name": _SCHEMA_TOOL_NAME}
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise GenerationFailed(
                f"Anthropic API error: {exc.status_code} - {exc.response.text}",
                status=exc.status_code, body=exc.response.text,
            ) from exc
        except anthropic.APIError as exc:
            raise GenerationFailed(f"Anthropic API request failed: {exc}") from exc

        if schema is not None:
            for block in response.content:
                if block.type == "tool_use":
                    return _unwrap_array(block.input)
        for block in response.content:
            if block.type == "text":
                return block.text
        return fallback

    async def _generate_openai(
        self, prompt: str, max_tokens: int, fallback: str, schema: dict[str, Any] | None,
    ) -> str:
        import openai

        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": _SCHEMA_TOOL_NAME, "schema": schema, "strict": True},
            }
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise GenerationFailed(
                f"OpenAI API error: {exc.status_code} - {exc.response.text}",
                status=exc.status_code, body=exc.response.text,
            ) from exc
        except openai.APIError as exc:
            raise GenerationFailed(f"OpenAI API request failed: {exc}") from exc

        text = response.choices[0].message.content if response.choices else None
        if not text:
            return fallback
        if schema is not None:
            try:
                return _unwrap_array(json.loads(text))
            except json.JSONDecodeError:
                # leave it to best-effort extraction
                return text
        return text


def _unwrap_array(payload: Any) -> str:
    """Return the first list value of a schema-constrained object as JSON text."""
    if isinstance(payload, dict):
        for value in payload.values():
            if isinstance(value, list):
                return json.dumps(value)
    if isinstance(payload, list):
        return json.dumps(payload)
    return "[]"
