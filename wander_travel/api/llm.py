"""LLM helper for the travel planner.

Wraps the synchronous OpenAI Chat Completions client behind a small async
facade (calls run in a worker thread) so the orchestrator and the round
planner can be driven by a scripted fake in tests. The client holds no
event-loop state, so one instance serves every request.
Transient failures are retried with tenacity; once retries are spent the
error is raised as ``LLMUnavailable``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from wander_travel.api.config import get_llm_config, get_openai_api_key
from wander_travel.api.errors import LLMUnavailable
from wander_travel.api.extraction import parse_json_reply

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.APITimeoutError,
    openai.RateLimitError,
    openai.InternalServerError,
)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> Dict[str, Any]:
        """Decode the JSON argument string; raises ValueError on junk."""
        if not self.arguments:
            return {}
        args = json.loads(self.arguments)
        if not isinstance(args, dict):
            raise ValueError(f"Arguments for {self.name} are not an object")
        return args


@dataclass
class ChatReply:
    content: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)

    def as_message(self) -> Dict[str, Any]:
        """Render as an assistant message for the next request."""
        message: Dict[str, Any] = {"role": "assistant", "content": self.content or None}
        if self.tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": call.arguments},
                }
                for call in self.tool_calls
            ]
        return message


class ChatClient:
    """Async chat client with retries."""

    def __init__(self, client: Optional[OpenAI] = None, config: Optional[dict] = None,
                 retry_wait_seconds: float = 0.5):
        self.config = config or get_llm_config()
        self.retry_wait_seconds = retry_wait_seconds
        self._client = client or OpenAI(
            api_key=get_openai_api_key(),
            timeout=self.config["timeout_seconds"],
            max_retries=0,
        )

    async def complete(self, messages: List[Dict[str, Any]], tools: Optional[List[dict]] = None,
                       model: Optional[str] = None, temperature: Optional[float] = None,
                       max_tokens: Optional[int] = None) -> ChatReply:
        kwargs: Dict[str, Any] = {
            "model": model or self.config["chat_model"],
            "messages": messages,
            "temperature": self.config["temperature"] if temperature is None else temperature,
            "max_tokens": max_tokens or self.config["max_tokens"],
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        logger.debug(
            "Calling OpenAI ChatCompletion: model=%s messages=%d tools=%d",
            kwargs["model"], len(messages), len(tools or []),
        )
        try:
            response = await self._create(kwargs)
        except openai.OpenAIError as e:
            logger.error(f"Chat endpoint unavailable: {e}")
            raise LLMUnavailable(str(e)) from e

        message = response.choices[0].message
        tool_calls = [
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments or "{}")
            for call in (message.tool_calls or [])
        ]
        return ChatReply(content=message.content or "", tool_calls=tool_calls)

    async def complete_json(self, system_prompt: str, user_prompt: str,
                            temperature: float = 0.3, max_tokens: int = 800) -> Dict[str, Any]:
        """One-shot planner call whose reply must contain a JSON object.

        Raises ``ValueError`` when the reply has no parsable object.
        """
        reply = await self.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            model=self.config["planner_model"],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        data = parse_json_reply(reply.content)
        if data is None:
            raise ValueError("Model reply contained no JSON object")
        return data

    async def _create(self, kwargs: Dict[str, Any]):
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config["retry_attempts"]),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=8),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            reraise=True,
        ):
            with attempt:
                return await asyncio.to_thread(self._client.chat.completions.create, **kwargs)
