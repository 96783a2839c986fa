"""Turn orchestrator: the tool-calling state machine.

A turn streams a completion from the model, parses it, and either finalizes
an answer or dispatches exactly one tool and streams another round with the
tool result appended to the history. The per-turn ToolLedger is the only
state carried across rounds.

States::

    STREAMING -> PARSED -> DISPATCHING -> STREAMING (next round)
                        -> FINALIZING -> DONE
    STREAMING | DISPATCHING -> ABORTED (cancellation)
    STREAMING | DISPATCHING -> FAILED (model stream or dispatcher fault)
"""

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Protocol

from verity_server.protocol.cancellation import CancellationToken
from verity_server.protocol.ledger import (
    CORRECTED_MESSAGE_NO_WEB_SEARCH,
    UNSUPPORTED_CLAIM_DISCLAIMER,
    UNVERIFIED_SEARCH_NOTE,
    ClaimDetector,
    ToolLedger,
)
from verity_server.protocol.parser import parse_response
from verity_server.protocol.prompts import build_system_content
from verity_server.protocol.types import (
    DispatchResult,
    FinalAnswer,
    Message,
    ToolArguments,
    ToolDefinition,
    ToolDispatcher,
    ToolRequest,
)

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 200
# Timer callbacks may fire within clock resolution of the deadline.
DEADLINE_SLACK_SECONDS = 0.01


class ChatStreamClient(Protocol):
    """Streaming completion service (OllamaClient satisfies this)."""

    def chat_stream(
        self,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[dict[str, Any]]: ...


class TurnState(str, Enum):
    STREAMING = "streaming"
    PARSED = "parsed"
    DISPATCHING = "dispatching"
    FINALIZING = "finalizing"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass(frozen=True)
class TurnConfig:
    """Generation and protocol settings fixed for the duration of a turn."""

    model: str
    system_prompt: str | None = None
    temperature: float = 0.7
    tool_temperature: float = 0.3
    strict_tool_mode: bool = True
    max_messages_in_prompt: int = 50
    max_output_tokens: int = 2048
    max_tool_rounds: int = 8
    extra_claim_patterns: tuple[str, ...] = ()

    def temperature_for(self, tools_enabled: bool) -> float:
        if tools_enabled and self.strict_tool_mode:
            return self.tool_temperature
        return self.temperature


@dataclass
class TurnEvent:
    """Something observable that happened during a turn.

    Types: content_delta, tool_start, tool_result, message, final,
    canceled, error.
    """

    type: str
    round: int = 0
    content: str = ""
    tool_name: str | None = None
    arguments: ToolArguments | None = None
    ok: bool | None = None
    message: Message | None = None
    corrected: bool = False
    round_limit_reached: bool = False
    error: str | None = None


@dataclass
class TurnOutcome:
    """Result of a turn driven to completion without observing its events."""

    state: TurnState
    final_content: str | None
    new_messages: list[Message] = field(default_factory=list)
    ledger: ToolLedger | None = None
    corrected: bool = False
    round_limit_reached: bool = False
    error: str | None = None


def _summarize(result: DispatchResult) -> str:
    if not result.ok:
        return result.error or "error"
    if len(result.content) > SUMMARY_MAX_CHARS:
        return result.content[:SUMMARY_MAX_CHARS] + "…"
    return result.content


class TurnOrchestrator:
    """Holds the collaborators shared by turns and starts new turns.

    An orchestrator keeps no per-turn state, so one instance can serve
    concurrent turns of independent conversations.

    Attributes:
        chat_client: Streaming model service
        dispatcher: Tool executor
        config: Turn configuration
    """

    def __init__(
        self,
        chat_client: ChatStreamClient,
        dispatcher: ToolDispatcher,
        config: TurnConfig,
    ) -> None:
        self.chat_client = chat_client
        self.dispatcher = dispatcher
        self.config = config
        self.claims = ClaimDetector(config.extra_claim_patterns)

    def start_turn(
        self,
        history: list[Message],
        tools: list[ToolDefinition],
        cancel_token: CancellationToken | None = None,
    ) -> "Turn":
        """Create a turn for the given history and enabled tools.

        Args:
            history: Conversation so far, ending with the user's message
            tools: Tools enabled for this turn (fixed for all rounds)
            cancel_token: Optional external cancellation signal

        Returns:
            A Turn; iterate ``events()`` or await ``run()`` to drive it
        """
        return Turn(self, history, tools, cancel_token or CancellationToken())

    async def complete_turn(
        self,
        history: list[Message],
        tools: list[ToolDefinition],
        cancel_token: CancellationToken | None = None,
    ) -> TurnOutcome:
        """Run a turn to a terminal state and collect its outcome."""
        turn = await self.start_turn(history, tools, cancel_token).run()
        return TurnOutcome(
            state=turn.state,
            final_content=turn.final_content,
            new_messages=list(turn.new_messages),
            ledger=turn.ledger,
            corrected=turn.corrected,
            round_limit_reached=turn.round_limit_reached,
            error=turn.error,
        )

    def build_prompt(self, history: list[Message], tools: list[ToolDefinition]) -> list[dict[str, str]]:
        """Build the model request messages: system content plus the bounded window."""
        conversation = [message for message in history if message.role != "system"]
        window = conversation[-self.config.max_messages_in_prompt :]
        system_content = build_system_content(self.config.system_prompt, tools)
        return [{"role": "system", "content": system_content}] + [
            message.to_ollama() for message in window
        ]


class Turn:
    """One conversational turn, possibly spanning several tool rounds.

    Attributes:
        state: Current TurnState
        ledger: Tool ledger for this turn
        round: Number of the current round (1-based)
        new_messages: Messages appended to history during the turn, in order
        final_content: Emitted final answer once DONE
        error: Error description once FAILED
    """

    def __init__(
        self,
        orchestrator: TurnOrchestrator,
        history: list[Message],
        tools: list[ToolDefinition],
        cancel_token: CancellationToken,
    ) -> None:
        self.orchestrator = orchestrator
        self.config = orchestrator.config
        self.tools = {tool.name: tool for tool in tools}
        self.cancel_token = cancel_token
        self.history: list[Message] = list(history)
        self.ledger = ToolLedger.create(self.tools)
        self.state = TurnState.STREAMING
        self.round = 0
        self.dispatch_count = 0
        self.new_messages: list[Message] = []
        self.final_content: str | None = None
        self.corrected = False
        self.round_limit_reached = False
        self.error: str | None = None
        self._parts: list[str] = []
        self._stream_canceled = False

    @property
    def buffer(self) -> str:
        return "".join(self._parts)

    @property
    def tools_enabled(self) -> bool:
        return bool(self.tools)

    async def run(self) -> "Turn":
        """Drive the turn to a terminal state, discarding events."""
        async for _ in self.events():
            pass
        return self

    async def events(self) -> AsyncIterator[TurnEvent]:
        """Drive the turn, yielding events as they happen."""
        logger.info(
            f"Turn started: model={self.config.model}, tools={sorted(self.tools) or 'none'}"
        )
        while True:
            self.round += 1
            self.state = TurnState.STREAMING
            try:
                async for event in self._stream_round():
                    yield event
            except Exception as e:
                logger.error(f"Model stream failed in round {self.round}: {e}")
                self.state = TurnState.FAILED
                self.error = f"Failed to generate response: {e}"
                if self.buffer:
                    yield self._commit("assistant", self.buffer)
                yield TurnEvent(type="error", round=self.round, error=self.error)
                return

            if self._stream_canceled or self.cancel_token.cancelled:
                async for event in self._abort():
                    yield event
                return

            self.state = TurnState.PARSED
            raw = self.buffer
            if not raw:
                logger.info(f"Round {self.round} produced no output")
                self.state = TurnState.DONE
                self.final_content = ""
                yield TurnEvent(type="final", round=self.round, content="")
                return

            intent = parse_response(raw)
            if isinstance(intent, ToolRequest) and intent.tool_name in self.tools:
                if self.dispatch_count >= self.config.max_tool_rounds:
                    logger.warning(
                        f"Tool round limit ({self.config.max_tool_rounds}) reached, "
                        f"finalizing with raw output"
                    )
                    self.round_limit_reached = True
                    async for event in self._finalize(raw):
                        yield event
                    return

                async for event in self._dispatch(intent):
                    yield event
                if self.state == TurnState.FAILED:
                    return
                if self.cancel_token.cancelled:
                    async for event in self._abort():
                        yield event
                    return
                continue

            if isinstance(intent, FinalAnswer):
                content = intent.content
            else:
                if isinstance(intent, ToolRequest):
                    logger.info(f"Model requested unavailable tool '{intent.tool_name}'")
                content = raw
            async for event in self._finalize(content):
                yield event
            return

    async def _stream_round(self) -> AsyncIterator[TurnEvent]:
        self._parts = []
        self._stream_canceled = False
        messages = self.orchestrator.build_prompt(self.history, list(self.tools.values()))
        options = {
            "temperature": self.config.temperature_for(self.tools_enabled),
            "num_predict": self.config.max_output_tokens,
        }
        logger.debug(f"Round {self.round}: sending {len(messages)} messages")

        stream = self.orchestrator.chat_client.chat_stream(
            model=self.config.model, messages=messages, options=options
        )
        async with aclosing(stream):
            while True:
                try:
                    chunk = await asyncio.wait_for(
                        anext(stream), timeout=self.cancel_token.remaining()
                    )
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    if not self._deadline_expired():
                        raise
                    logger.warning(f"Model stream stalled past the turn deadline in round {self.round}")
                    break
                if self.cancel_token.cancelled:
                    break
                content = (chunk.get("message") or {}).get("content") or ""
                if content:
                    self._parts.append(content)
                    yield TurnEvent(type="content_delta", round=self.round, content=content)
                if chunk.get("done"):
                    if chunk.get("canceled") or chunk.get("done_reason") == "canceled":
                        self._stream_canceled = True
                    break

    def _deadline_expired(self) -> bool:
        """Mark the token cancelled if a wait timed out because of the turn deadline."""
        remaining = self.cancel_token.remaining()
        if remaining is None or remaining > DEADLINE_SLACK_SECONDS:
            return False
        self.cancel_token.cancel("deadline")
        return True

    async def _abort(self) -> AsyncIterator[TurnEvent]:
        self.state = TurnState.ABORTED
        reason = self.cancel_token.reason or "stream"
        logger.warning(f"Turn canceled in round {self.round} ({reason})")
        partial = self.buffer
        if partial:
            yield self._commit("assistant", partial)
        yield TurnEvent(type="canceled", round=self.round, content=partial)

    def _prepare_arguments(self, definition: ToolDefinition, arguments: ToolArguments) -> ToolArguments:
        prepared = dict(arguments)
        if not definition.writes_content:
            return prepared

        body = prepared.get("content")
        body = body if isinstance(body, str) else ("" if body is None else str(body))
        searched = self.ledger.web_search_succeeded()
        last_search = self.ledger.last_web_search_result()
        no_results = last_search is not None and (
            last_search.result_count == 0 or not last_search.urls
        )
        if self.orchestrator.claims.has_fake_claim(body) and not searched:
            logger.warning(f"Unsupported web search claim in {definition.name} content")
            body = UNSUPPORTED_CLAIM_DISCLAIMER + body
        elif searched and no_results:
            body = UNVERIFIED_SEARCH_NOTE + body
        prepared["content"] = body + self.ledger.build_provenance_footer()
        return prepared

    async def _execute(self, name: str, arguments: ToolArguments) -> DispatchResult | None:
        """Run the dispatcher within the turn deadline; None once the deadline passes."""
        try:
            return await asyncio.wait_for(
                self.orchestrator.dispatcher.execute(name, arguments),
                timeout=self.cancel_token.remaining(),
            )
        except asyncio.TimeoutError:
            if not self._deadline_expired():
                raise
            logger.warning(f"Tool {name} still running at the turn deadline, abandoned")
            return None

    async def _dispatch(self, request: ToolRequest) -> AsyncIterator[TurnEvent]:
        self.state = TurnState.DISPATCHING
        name = request.tool_name
        arguments = self._prepare_arguments(self.tools[name], request.arguments)
        yield TurnEvent(type="tool_start", round=self.round, tool_name=name, arguments=arguments)

        started_at = time.time()
        try:
            result = await self._execute(name, arguments)
        except Exception as e:
            logger.error(f"Tool dispatch raised for {name}: {e}")
            self.state = TurnState.FAILED
            self.error = f"Tool {name} failed: {e}"
            yield self._commit("assistant", self.buffer)
            yield TurnEvent(type="error", round=self.round, tool_name=name, error=self.error)
            return
        if result is None:
            # Deadline passed; the request stays in the buffer for _abort to commit.
            return

        self.ledger.record(
            name,
            arguments,
            "success" if result.ok else "error",
            _summarize(result),
            result.content,
            started_at=started_at,
            finished_at=time.time(),
        )
        self.dispatch_count += 1
        tool_text = result.content if result.ok else f"Error: {result.error or 'unknown'}"
        logger.info(f"Tool {name} executed (ok={result.ok}), requesting follow-up")
        yield TurnEvent(
            type="tool_result",
            round=self.round,
            tool_name=name,
            arguments=arguments,
            ok=result.ok,
            content=tool_text,
        )
        yield self._commit("assistant", self.buffer)
        yield self._commit("user", f"[Tool result from {name}]\n{tool_text}")
        self._parts = []

    async def _finalize(self, content: str) -> AsyncIterator[TurnEvent]:
        self.state = TurnState.FINALIZING
        if self.orchestrator.claims.has_fake_claim(content) and not self.ledger.web_search_succeeded():
            logger.warning("Replaced final answer claiming a web search that was not performed")
            content = CORRECTED_MESSAGE_NO_WEB_SEARCH
            self.corrected = True

        yield self._commit("assistant", content)
        self.final_content = content
        self.state = TurnState.DONE
        logger.info(f"Turn done after {self.round} round(s), {self.dispatch_count} tool call(s)")
        yield TurnEvent(
            type="final",
            round=self.round,
            content=content,
            corrected=self.corrected,
            round_limit_reached=self.round_limit_reached,
        )

    def _commit(self, role: str, content: str) -> TurnEvent:
        message = Message(role=role, content=content, timestamp=int(time.time()))
        self.history.append(message)
        self.new_messages.append(message)
        return TurnEvent(type="message", round=self.round, message=message)
