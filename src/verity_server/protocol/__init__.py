"""Tool-calling turn protocol.

This package contains the response parser, the per-turn truthfulness ledger,
prompt construction and the turn orchestrator state machine.
"""

from verity_server.protocol.cancellation import CancellationToken
from verity_server.protocol.ledger import ClaimDetector, ToolLedger, has_fake_claim
from verity_server.protocol.orchestrator import (
    Turn,
    TurnConfig,
    TurnEvent,
    TurnOrchestrator,
    TurnOutcome,
    TurnState,
)
from verity_server.protocol.parser import parse_response
from verity_server.protocol.types import (
    DispatchResult,
    FinalAnswer,
    Message,
    ToolDefinition,
    ToolDispatcher,
    ToolRequest,
    ToolRisk,
)

__all__ = [
    "CancellationToken",
    "ClaimDetector",
    "DispatchResult",
    "FinalAnswer",
    "Message",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolLedger",
    "ToolRequest",
    "ToolRisk",
    "Turn",
    "TurnConfig",
    "TurnEvent",
    "TurnOrchestrator",
    "TurnOutcome",
    "TurnState",
    "has_fake_claim",
    "parse_response",
]
