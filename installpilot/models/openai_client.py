"""OpenAI API client wrapper for installpilot."""

import base64
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from installpilot.config.settings import get_settings


class OpenAIClient:
    """Wrapper for OpenAI API interactions.

    Replies are returned as raw text; callers own parsing and validation.
    """

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: Optional[str] = None,
        max_retries: Optional[int] = None,
        reasoning_level: str = "low",
        request_timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        """
        Initialize OpenAI client.

        Args:
            model: Model to use for completions
            api_key: Optional API key (defaults to env/config)
            max_retries: Maximum number of SDK-level retry attempts
            reasoning_level: Reasoning effort for Responses API models
            request_timeout: Per-request timeout in seconds
            client: Preconfigured SDK client (tests)
        """
        self.model = model
        self.reasoning_level = reasoning_level
        self.logger = logging.getLogger("openai_client")

        settings = get_settings()
        self.max_retries = settings.openai_max_retries if max_retries is None else max_retries
        self.request_timeout = request_timeout or float(
            settings.openai_request_timeout_seconds
        )

        if client is not None:
            self.client = client
            return

        self.api_key = api_key or settings.openai_api_key
        if not self.api_key:
            raise ValueError(
                "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
            )

        self.client = AsyncOpenAI(
            api_key=self.api_key,
            max_retries=self.max_retries,
        )

    async def call(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.2,
        max_tokens: Optional[int] = None,
        system_prompt: Optional[str] = None,
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make a call to the OpenAI API."""

        final_messages: List[Dict[str, Any]] = []
        if system_prompt:
            final_messages.append({"role": "system", "content": system_prompt})
        final_messages.extend(messages)

        self.logger.debug(
            f"OpenAI API call: model={self.model}, "
            f"messages={len(final_messages)}, temperature={temperature}"
        )

        try:
            if self._should_use_responses_api(self.model):
                return await self._call_responses_api(
                    final_messages=final_messages,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    response_format=response_format,
                    system_prompt=system_prompt,
                )

            return await self._call_chat_completions(
                final_messages=final_messages,
                temperature=temperature,
                max_tokens=max_tokens,
                response_format=response_format,
            )

        except openai.APIError as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise

    async def analyze_image(
        self,
        image_data: bytes,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.2,
        detail: str = "high",
        response_format: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Analyze an image using vision capabilities.

        Args:
            image_data: PNG image bytes
            prompt: Analysis prompt
            system_prompt: Optional system instructions
            temperature: Temperature for response
            detail: Image detail level ('low', 'high', 'auto')
            response_format: Optional response format specification

        Returns:
            Response dictionary with raw text under "content"
        """
        base64_image = base64.b64encode(image_data).decode("utf-8")

        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {
                            "url": f"data:image/png;base64,{base64_image}",
                            "detail": detail,
                        },
                    },
                ],
            }
        ]

        return await self.call(
            messages=messages,
            temperature=temperature,
            system_prompt=system_prompt,
            response_format=response_format,
        )

    def _should_use_responses_api(self, model: str) -> bool:
        """Return True when the Responses API should be used."""
        return model.startswith("gpt-5") or model.startswith("gpt-4.1")

    def _supports_responses_temperature(self, model: str) -> bool:
        # Reasoning models such as GPT-5 reject temperature.
        return not model.startswith("gpt-5")

    async def _call_chat_completions(
        self,
        final_messages: List[Dict[str, Any]],
        temperature: float,
        max_tokens: Optional[int],
        response_format: Optional[Dict[str, Any]],
    ) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": final_messages,
            "temperature": temperature,
        }

        if max_tokens:
            kwargs["max_completion_tokens"] = max_tokens

        if response_format:
            kwargs["response_format"] = response_format

        response = await self.client.chat.completions.create(
            timeout=self.request_timeout,
            **kwargs,
        )

        usage = getattr(response, "usage", None)
        return {
            "content": response.choices[0].message.content or "",
            "usage": {
                "prompt_tokens": self._safe_usage_lookup(usage, "prompt_tokens"),
                "completion_tokens": self._safe_usage_lookup(usage, "completion_tokens"),
                "total_tokens": self._safe_usage_lookup(usage, "total_tokens"),
            },
            "model": response.model,
            "finish_reason": response.choices[0].finish_reason,
        }

    async def _call_responses_api(
        self,
        final_messages: List[Dict[str, Any]],
        temperature: float,
        max_tokens: Optional[int],
        response_format: Optional[Dict[str, Any]],
        system_prompt: Optional[str],
    ) -> Dict[str, Any]:
        instructions, input_items = self._prepare_responses_input(final_messages, system_prompt)

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "input": input_items,
        }

        if instructions:
            kwargs["instructions"] = instructions

        if max_tokens:
            kwargs["max_output_tokens"] = max_tokens

        text_config = self._map_response_format_to_text_config(response_format)
        if text_config:
            kwargs["text"] = text_config

        if self.reasoning_level and self.model.startswith("gpt-5"):
            kwargs["reasoning"] = {"effort": self.reasoning_level}

        if self._supports_responses_temperature(self.model):
            kwargs["temperature"] = temperature

        response = await self.client.responses.create(
            timeout=self.request_timeout,
            **kwargs,
        )

        usage = getattr(response, "usage", None)
        return {
            "content": self._extract_output_text(response),
            "usage": {
                "prompt_tokens": self._safe_usage_lookup(usage, "input_tokens"),
                "completion_tokens": self._safe_usage_lookup(usage, "output_tokens"),
                "total_tokens": self._safe_usage_lookup(usage, "total_tokens"),
            },
            "model": getattr(response, "model", self.model),
            "finish_reason": getattr(response, "status", None),
        }

    def _prepare_responses_input(
        self,
        final_messages: Sequence[Dict[str, Any]],
        system_prompt: Optional[str],
    ) -> tuple[Optional[str], List[Dict[str, Any]]]:
        instructions = system_prompt or None
        input_items: List[Dict[str, Any]] = []

        for message in final_messages:
            role = message.get("role", "user")
            content = message.get("content", "")

            if role == "system":
                text = content if isinstance(content, str) else str(content)
                if instructions:
                    if text.strip() and text.strip() != instructions.strip():
                        instructions = f"{instructions}\n{text}"
                else:
                    instructions = text
                continue

            input_items.append({"role": role, "content": self._convert_content_for_role(role, content)})

        return instructions, input_items

    def _convert_content_for_role(self, role: str, content: Any) -> List[Dict[str, Any]]:
        default_type = "output_text" if role == "assistant" else "input_text"
        if not isinstance(content, list):
            return [{"type": default_type, "text": str(content)}]

        content_items: List[Dict[str, Any]] = []
        for item in content:
            if not isinstance(item, dict):
                content_items.append({"type": default_type, "text": str(item)})
                continue

            item_type = item.get("type")
            if item_type in {"text", "input_text", "output_text"}:
                content_items.append({"type": default_type, "text": item.get("text", "")})
            elif item_type in {"image_url", "input_image"}:
                image_data = item.get("image_url")
                detail = item.get("detail")
                if isinstance(image_data, dict):
                    detail = detail or image_data.get("detail")
                    image_url = image_data.get("url")
                else:
                    image_url = image_data
                if image_url:
                    image_item = {"type": "input_image", "image_url": image_url}
                    if detail:
                        image_item["detail"] = detail
                    content_items.append(image_item)
            else:
                content_items.append({"type": default_type, "text": json.dumps(item)})

        return content_items

    def _extract_output_text(self, response: Any) -> str:
        if getattr(response, "output_text", None):
            return response.output_text

        output_segments = getattr(response, "output", None)
        if not output_segments:
            return ""

        texts: List[str] = []
        for segment in output_segments:
            pieces = segment.get("content", []) if isinstance(segment, dict) else getattr(segment, "content", []) or []
            for piece in pieces:
                text_value = piece.get("text") if isinstance(piece, dict) else getattr(piece, "text", None)
                if text_value:
                    texts.append(text_value)

        return "\n".join(texts)

    def _safe_usage_lookup(self, usage: Any, key: str) -> int:
        if usage is None:
            return 0
        if isinstance(usage, dict):
            return int(usage.get(key, 0) or 0)
        return int(getattr(usage, key, 0) or 0)

    def _map_response_format_to_text_config(
        self, response_format: Optional[Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        """Translate chat-style response_format into Responses API text config."""
        if not response_format:
            return None

        format_type = response_format.get("type")
        if format_type == "json_object":
            return {"format": {"type": "json_object"}}

        if format_type == "json_schema":
            schema = response_format.get("json_schema")
            if schema:
                return {"format": {"type": "json_schema", **schema}}

        if format_type == "text":
            return {"format": {"type": "text"}}

        return None
