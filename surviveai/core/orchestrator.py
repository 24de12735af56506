"""Conversation-turn orchestration: retrieve, ground, generate, check quality."""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from surviveai.core.cache_matcher import CacheMatcher
from surviveai.core.knowledge_retriever import DEFAULT_MAX_RESULTS, KnowledgeRetriever
from surviveai.core.llm_connector import CompletionResult, FunctionCall, TokenCallback
from surviveai.core.model_lifecycle import ModelHandle
from surviveai.core.prompt_composer import (
    PromptComposer,
    format_knowledge_for_prompt,
    format_tool_result_for_messages,
)
from surviveai.core.quality_analyzer import QualityAnalysis, QualityAnalyzer
from surviveai.core.response_processor import clean_response
from surviveai.lib.errors import (
    GenerationError,
    GenerationTimeoutError,
    ModelNotInitializedError,
    SurviveAIError,
)
from surviveai.lib.logger import log_event
from surviveai.models.conversation import ChatMessage, PerformanceMetrics, ResponseSource
from surviveai.models.device_context import DeviceContext
from surviveai.tools.base_tool import BaseTool, ToolStatus
from surviveai.tools.knowledge_lookup import KnowledgeLookupTool

logger = logging.getLogger(__name__)

DEFAULT_RESPONSE_TIMEOUT = 60.0
DEFAULT_MAX_TOKENS = 1024


class TurnState(str, Enum):
    """States of a single conversational turn."""

    IDLE = "idle"
    RETRIEVING = "retrieving"
    TOOL_CALL_ROUND_1 = "tool_call_round_1"
    TOOL_EXECUTED = "tool_executed"
    TOOL_CALL_ROUND_2 = "tool_call_round_2"
    STREAMING = "streaming"
    QUALITY_CHECK = "quality_check"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SmartResponse:
    """Final result of one turn, tagged with its source."""

    response: str
    source: ResponseSource
    quality_score: int
    quality: QualityAnalysis | None = None
    knowledge_entry_id: str | None = None
    used_tool_calling: bool = False
    from_cache: bool = False
    metrics: PerformanceMetrics | None = None
    states: List[TurnState] = field(default_factory=list)


@dataclass
class _Turn:
    turn_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    states: List[TurnState] = field(default_factory=lambda: [TurnState.IDLE])
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def state(self) -> TurnState:
        return self.states[-1]

    def transition(self, state: TurnState) -> None:
        # A timed-out turn keeps running in the background; its record is closed
        if self.state in (TurnState.DONE, TurnState.FAILED):
            return
        log_event(logger, logging.DEBUG, "Turn transition", turn=self.turn_id,
                  from_state=self.state.value, to_state=state.value)
        self.states.append(state)


@dataclass
class _Generation:
    text: str
    metrics: PerformanceMetrics
    used_tool_calling: bool = False
    injected_knowledge: str = ""
    entry_ids: List[str] = field(default_factory=list)


def _last_user_message(messages: Sequence[ChatMessage]) -> Optional[ChatMessage]:
    for message in reversed(messages):
        if message.role == "user":
            return message
    return None


def _discard_late_result(task: "asyncio.Future[Any]") -> None:
    """Log and drop the outcome of a generation that outlived its timeout."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.warning(f"Timed-out generation later failed: {error}")
    else:
        logger.info("Discarding response that arrived after timeout")


class ResponseOrchestrator:
    """Drives one conversational turn against a loaded model.

    Retrieval, scoring, and quality checks are pure; the only suspension
    point is the generation engine. With tool calling the two generation
    rounds run strictly in sequence.
    """

    def __init__(
        self,
        model_handle: ModelHandle,
        retriever: KnowledgeRetriever,
        prompt_composer: PromptComposer | None = None,
        quality_analyzer: QualityAnalyzer | None = None,
        tools: Dict[str, BaseTool] | None = None,
        cache_matcher: CacheMatcher | None = None,
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        knowledge_search_limit: int = DEFAULT_MAX_RESULTS,
        use_cached_answers: bool = False,
    ):
        """Initialize orchestrator.

        Args:
            model_handle: Owner of the loaded generation engine
            retriever: Knowledge retriever over the corpus
            prompt_composer: System prompt builder
            quality_analyzer: Post-hoc response checker
            tools: Tools offered to tool-calling models (default: knowledge lookup)
            cache_matcher: Cached-answer matcher (required for use_cached_answers)
            response_timeout: Seconds before a turn fails with a timeout
            max_tokens: Generation limit per round
            knowledge_search_limit: Entries injected by static grounding
            use_cached_answers: Answer high-confidence cache matches without generation
        """
        self.model_handle = model_handle
        self.retriever = retriever
        self.prompt_composer = prompt_composer or PromptComposer(
            supports_vision=model_handle.model_config.supports_vision
        )
        self.quality_analyzer = quality_analyzer or QualityAnalyzer()
        if tools is None:
            tools = {KnowledgeLookupTool.name: KnowledgeLookupTool(retriever)}
        self.tools = tools
        self.cache_matcher = cache_matcher
        self.response_timeout = response_timeout
        self.max_tokens = max_tokens
        self.knowledge_search_limit = knowledge_search_limit
        self.use_cached_answers = use_cached_answers and cache_matcher is not None

    def tool_calling_enabled(self) -> bool:
        return self.model_handle.model_config.supports_tool_calling and any(
            tool.enabled for tool in self.tools.values()
        )

    async def generate_response(
        self,
        messages: Sequence[ChatMessage],
        on_token: Optional[TokenCallback] = None,
        context: Optional[DeviceContext] = None,
    ) -> SmartResponse:
        """Produce the assistant response for the latest user utterance.

        Args:
            messages: Conversation history, oldest first
            on_token: Called with each raw streamed token
            context: Optional device context for the prompt

        Returns:
            SmartResponse with text, source attribution, quality, and metrics

        Raises:
            ModelNotInitializedError: If the model is not loaded
            GenerationTimeoutError: If the turn exceeds response_timeout
            GenerationError: If the engine fails on the final path
        """
        turn = _Turn()
        turn.transition(TurnState.RETRIEVING)

        cached = self._try_cached_answer(turn, messages)
        if cached is not None:
            return cached

        if not self.model_handle.is_ready:
            turn.transition(TurnState.FAILED)
            raise ModelNotInitializedError(self.model_handle.model_id)

        task = asyncio.ensure_future(self._run_turn(turn, messages, on_token, context))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=self.response_timeout)
        except asyncio.TimeoutError:
            turn.transition(TurnState.FAILED)
            # The engine cannot be aborted mid-generation; let it finish unobserved
            task.add_done_callback(_discard_late_result)
            logger.error(f"Turn {turn.turn_id} timed out after {self.response_timeout}s")
            raise GenerationTimeoutError(self.response_timeout)
        except SurviveAIError:
            turn.transition(TurnState.FAILED)
            raise
        except Exception as e:
            turn.transition(TurnState.FAILED)
            logger.error(f"Turn {turn.turn_id} failed: {e}")
            raise GenerationError(str(e)) from e

    def _try_cached_answer(
        self, turn: _Turn, messages: Sequence[ChatMessage]
    ) -> Optional[SmartResponse]:
        if not self.use_cached_answers:
            return None

        last_user = _last_user_message(messages)
        if last_user is None:
            return None

        match = self.cache_matcher.find_cached_answer_with_details(last_user.content)
        if match is None or match.score < self.cache_matcher.high_confidence:
            return None

        turn.transition(TurnState.QUALITY_CHECK)
        quality = self.quality_analyzer.analyze(match.qa.answer)
        turn.transition(TurnState.DONE)
        logger.info(f"CACHE HIT | qa={match.qa.id} score={match.score}")
        return SmartResponse(
            response=match.qa.answer,
            source="knowledge-grounded",
            quality_score=quality.score,
            quality=quality,
            knowledge_entry_id=match.qa.related_entry_id,
            from_cache=True,
            states=list(turn.states),
        )

    async def _run_turn(
        self,
        turn: _Turn,
        messages: Sequence[ChatMessage],
        on_token: Optional[TokenCallback],
        context: Optional[DeviceContext],
    ) -> SmartResponse:
        last_user = _last_user_message(messages)
        entries = (
            self.retriever.search_knowledge(last_user.content, self.knowledge_search_limit)
            if last_user
            else []
        )
        knowledge_block = format_knowledge_for_prompt(entries)
        logger.info(
            f"Retrieved {len(entries)} knowledge entries | turn={turn.turn_id} "
            f"ids={[e.id for e in entries]}"
        )

        generation: _Generation | None = None
        if self.tool_calling_enabled():
            try:
                generation = await self._generate_with_tools(turn, messages, on_token, context)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Tool calling failed, falling back to static knowledge: {e}")

        if generation is None:
            turn.transition(TurnState.STREAMING)
            formatted = self.prompt_composer.format_messages(messages, context, knowledge_block)
            result = await self._complete(formatted, on_token=on_token)
            generation = _Generation(
                text=result.response,
                metrics=result.metrics,
                injected_knowledge=knowledge_block,
                entry_ids=[e.id for e in entries],
            )

        turn.transition(TurnState.QUALITY_CHECK)
        response = clean_response(generation.text)
        if self.quality_analyzer.is_definitely_low_quality(response):
            log_event(logger, logging.WARNING, "Response failed quick quality check",
                      turn=turn.turn_id, length=len(response))
        quality = self.quality_analyzer.analyze(response, generation.injected_knowledge or None)
        if quality.is_low_confidence:
            logger.warning(f"Low-confidence response (score={quality.score}): {quality.issues}")

        source: ResponseSource = "knowledge-grounded" if generation.injected_knowledge else "model"
        turn.transition(TurnState.DONE)
        elapsed = time.perf_counter() - turn.started_at
        logger.info(
            f"TURN COMPLETE | turn={turn.turn_id} source={source} "
            f"tools={generation.used_tool_calling} quality={quality.score} time={elapsed:.2f}s"
        )

        return SmartResponse(
            response=response,
            source=source,
            quality_score=quality.score,
            quality=quality,
            knowledge_entry_id=generation.entry_ids[0] if generation.entry_ids else None,
            used_tool_calling=generation.used_tool_calling,
            metrics=generation.metrics,
            states=list(turn.states),
        )

    async def _generate_with_tools(
        self,
        turn: _Turn,
        messages: Sequence[ChatMessage],
        on_token: Optional[TokenCallback],
        context: Optional[DeviceContext],
    ) -> _Generation:
        """Tool-calling round trip: offer the tool, run it, ask again without tools."""
        turn.transition(TurnState.TOOL_CALL_ROUND_1)
        formatted = self.prompt_composer.format_messages(messages, context)
        schemas = [tool.schema() for tool in self.tools.values() if tool.enabled]
        first = await self._complete(formatted, tools=schemas, on_token=on_token)

        call = self._select_call(first.function_calls)
        if call is None:
            return _Generation(text=first.response, metrics=first.metrics, used_tool_calling=True)

        turn.transition(TurnState.TOOL_EXECUTED)
        tool_result = await self.tools[call.name].execute_with_fallback(call.arguments)
        if tool_result.status != ToolStatus.SUCCESS:
            raise GenerationError(f"Tool {call.name} failed: {tool_result.error}")
        logger.info(f"Executed {call.name} with {call.arguments}")

        turn.transition(TurnState.TOOL_CALL_ROUND_2)
        followup = formatted + [
            {"role": "user", "content": format_tool_result_for_messages(call.arguments, tool_result.output)}
        ]
        second = await self._complete(followup, on_token=on_token)

        # An invalid-topic reply is tool output, not knowledge
        entry_ids = list(tool_result.data.get("entry_ids", []))
        return _Generation(
            text=second.response,
            metrics=first.metrics.combine(second.metrics),
            used_tool_calling=True,
            injected_knowledge=tool_result.output if entry_ids else "",
            entry_ids=entry_ids,
        )

    def _select_call(self, calls: List[FunctionCall]) -> Optional[FunctionCall]:
        for call in calls:
            if call.name in self.tools:
                return call
            logger.warning(f"Model called unknown tool: {call.name}")
        return None

    async def _complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        on_token: Optional[TokenCallback] = None,
    ) -> CompletionResult:
        async with self.model_handle.generation() as engine:
            return await engine.complete(
                messages, tools=tools, max_tokens=self.max_tokens, on_token=on_token
            )
