# wander_travel/api/agent/orchestrator.py
"""Tool-calling conversation loop that turns a user request into stops.

One user turn moves through ``Drafting -> ToolDispatch -> Drafting ... ->
Terminal``. Tool calls from one model reply run concurrently; everything
after the terminal reply (geocoding, travel legs) runs sequentially per stop.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from wander_travel.api.agent.function_handler import FunctionHandler
from wander_travel.api.agent.prompts import (
    FALLBACK_REPLY,
    FINAL_ANSWER_INSTRUCTION,
    PROCEED_INSTRUCTION,
    build_system_prompt,
    build_user_prompt,
)
from wander_travel.api.errors import BudgetExhausted
from wander_travel.api.extraction import ExtractionResult, StructuredRecordExtractor
from wander_travel.api.llm import ChatReply, ToolCall
from wander_travel.api.models import Coordinates, PlanResult

logger = logging.getLogger(__name__)

_HISTORY_ROLES = ("user", "assistant")
_DEBUG_PREVIEW = 500


def asks_user_question(display_text: str) -> bool:
    """True when the reply (records removed) is asking the user something."""
    return "?" in (display_text or "")


@dataclass
class TurnState:
    messages: List[Dict[str, Any]]
    iterations: int = 0
    last_content: str = ""
    extraction: Optional[ExtractionResult] = None


class ConversationOrchestrator:
    """Drives the chat model until it produces a terminal itinerary reply."""

    def __init__(self, chat_client, gateway, geocoder=None, augmenter=None,
                 extractor: Optional[StructuredRecordExtractor] = None,
                 region_name: str = "Rhodes, Greece", max_iterations: int = 5,
                 question_predicate: Callable[[str], bool] = asks_user_question):
        self.chat = chat_client
        self.gateway = gateway
        self.geocoder = geocoder
        self.augmenter = augmenter
        self.extractor = extractor or StructuredRecordExtractor()
        self.region_name = region_name
        self.max_iterations = max(1, max_iterations)
        self.asks_question = question_predicate

    async def run(self, history: Optional[List[Dict[str, Any]]], prompt: str,
                  user_location: Optional[Coordinates] = None,
                  preferences: Optional[Dict[str, Any]] = None) -> PlanResult:
        """Plan one user turn.

        Args:
            history: Prior ``{role, content}`` messages
            prompt: The new user message
            user_location: Live user coordinates, if shared
            preferences: User preference set

        Returns:
            PlanResult with the display text, enriched stops and diagnostics

        Raises:
            LLMUnavailable: If the chat endpoint cannot be reached
        """
        handler = FunctionHandler(self.gateway, preferences)
        tools = await handler.function_definitions()
        system_prompt = build_system_prompt(
            self.region_name,
            preferences,
            contextual_tool=any(t["function"]["name"] == "contextualRecommendations" for t in tools),
        )
        state = TurnState(
            messages=[{"role": "system", "content": system_prompt}]
            + self._clean_history(history)
            + [{"role": "user", "content": build_user_prompt(prompt, user_location)}]
        )

        budget_exhausted = False
        retried = False
        try:
            await self._converse(state, handler, tools)
        except BudgetExhausted as e:
            logger.warning(str(e))
            budget_exhausted = True
            retried = await self._best_available(state)

        extraction = state.extraction
        reply_text = extraction.display_text or FALLBACK_REPLY
        stops = extraction.records

        geocoded = 0
        legs = 0
        if stops:
            if self.geocoder is not None:
                geocoded = await self.geocoder.geocode_stops(stops)
            if self.augmenter is not None:
                legs = await self.augmenter.augment(stops, user_location)

        diagnostics = {
            "iterations": state.iterations,
            "toolsUsed": list(handler.calls),
            "budgetExhausted": budget_exhausted,
            "retried": retried,
            "extraction": extraction.to_dict(),
            "geocoded": geocoded,
            "travelLegsFilled": legs,
            "providerUsage": self.gateway.usage_summary(),
        }
        logger.info(
            f"Turn complete: {len(stops)} stops after {state.iterations} iterations "
            f"(tools: {', '.join(handler.calls) or 'none'})"
        )
        return PlanResult(reply_text=reply_text, stops=stops, diagnostics=diagnostics)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _converse(self, state: TurnState, handler: FunctionHandler, tools: List[dict]) -> None:
        while state.iterations < self.max_iterations:
            state.iterations += 1
            reply = await self.chat.complete(state.messages, tools=tools)
            state.last_content = reply.content or ""
            logger.debug(f"Model reply {state.iterations}: {state.last_content[:_DEBUG_PREVIEW]}")

            if reply.tool_calls:
                await self._dispatch_tools(state, handler, reply)
                continue

            state.messages.append({"role": "assistant", "content": reply.content})
            extraction = self.extractor.extract(reply.content)
            asking = self.asks_question(extraction.display_text)

            if extraction.records and not asking:
                state.extraction = extraction
                return
            if not extraction.records and asking:
                # Clarifying question with nothing to show yet
                state.extraction = extraction
                return

            logger.info(
                f"Reply not terminal ({len(extraction.records)} records, question={asking}), "
                "asking the model to proceed"
            )
            state.messages.append({"role": "user", "content": PROCEED_INSTRUCTION})

        raise BudgetExhausted(f"No terminal reply after {state.iterations} iterations")

    async def _dispatch_tools(self, state: TurnState, handler: FunctionHandler, reply: ChatReply) -> None:
        state.messages.append(reply.as_message())
        results = await asyncio.gather(*(self._run_tool(handler, call) for call in reply.tool_calls))
        for call, result in zip(reply.tool_calls, results):
            state.messages.append({
                "role": "tool",
                "tool_call_id": call.id,
                "content": json.dumps(result, default=str),
            })

    @staticmethod
    async def _run_tool(handler: FunctionHandler, call: ToolCall) -> Dict[str, Any]:
        try:
            arguments = call.parsed_arguments()
        except ValueError as e:
            logger.warning(f"Invalid arguments for {call.name}: {e}")
            return {"error": f"Invalid arguments: {e}", "success": False}
        return await handler.handle_function_call(call.id, call.name, arguments)

    async def _best_available(self, state: TurnState) -> bool:
        """Settle on an answer once the iteration budget is spent.

        Uses the last assistant message; when that is empty, asks once more
        without tools. Returns whether the extra call was made.
        """
        if state.last_content.strip():
            state.extraction = self.extractor.extract(state.last_content)
            return False

        logger.info("Last assistant message empty, requesting final itinerary without tools")
        reply = await self.chat.complete(
            state.messages + [{"role": "user", "content": FINAL_ANSWER_INSTRUCTION}]
        )
        state.last_content = reply.content or ""
        state.extraction = self.extractor.extract(state.last_content)
        return True

    @staticmethod
    def _clean_history(history: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        cleaned = []
        for message in history or []:
            if not isinstance(message, dict):
                continue
            role, content = message.get("role"), message.get("content")
            if role in _HISTORY_ROLES and isinstance(content, str) and content:
                cleaned.append({"role": role, "content": content})
        return cleaned
