"""Per-turn tool ledger and truthfulness checks.

A ToolLedger records which tools were available during a turn and which were
actually invoked, with what result. It is used to reject claims of web
lookups that never happened and to build the provenance footer appended to
tool-written content. Every operation is total: malformed tool output
degrades to "no structured result" instead of raising.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from pydantic import ValidationError

from verity_server.protocol.types import (
    WEB_SEARCH_TOOL,
    ToolArguments,
    WebSearchOutput,
)

logger = logging.getLogger(__name__)

MAX_SOURCE_URLS = 20
OFFLINE_MARKER = "None (offline)"

DEFAULT_CLAIM_PATTERNS: tuple[str, ...] = (
    r"\bafter\s+searching\b",
    r"\bi\s+looked\s+it\s+up\b",
    r"\baccording\s+to\s+my\s+web\s+search\b",
    r"\bi\s+found\s+online\b",
    r"\bmy\s+search\s+(?:results?|found)\b",
    r"\bsearch\s+results?\s+(?:show|indicate)\b",
    r"\b(?:from|according\s+to)\s+(?:the\s+)?(?:web|internet)\b",
    r"\b(?:a\s+)?quick\s+search\s+(?:shows|reveals)\b",
    r"\b(?:i\s+)?searched\s+(?:the\s+)?(?:web|internet)\b",
)

CORRECTED_MESSAGE_NO_WEB_SEARCH = (
    "I did not perform a web search. Web search is either not enabled in this "
    "session or was not used for this response.\n\n"
    "If you need up-to-date information from the internet, enable the web_search "
    "tool and try again. Otherwise, I can only use my training knowledge and any "
    "tools that were actually used (e.g. reading or writing files). I will not "
    "claim to have searched the web when I have not."
)

UNSUPPORTED_CLAIM_DISCLAIMER = (
    "Note: Web search was not performed. The following is from the assistant's "
    "general knowledge or other tools.\n\n"
)

UNVERIFIED_SEARCH_NOTE = (
    "Note: Could not verify via web_search (the last search returned no results).\n\n"
)

PROVENANCE_DISCLAIMER = (
    "This assistant cannot browse the internet unless the web_search tool "
    "is enabled and was used."
)

_URL_TOKEN = re.compile(r"https?://[^\s\"'<>)\]]+")


class ClaimDetector:
    """Detects text asserting that an internet lookup took place.

    The pattern set is open: extra patterns extend the defaults.
    """

    def __init__(self, extra_patterns: Iterable[str] = ()) -> None:
        self.patterns = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in (*DEFAULT_CLAIM_PATTERNS, *extra_patterns)
        ]

    def has_fake_claim(self, text: str) -> bool:
        if not text or not isinstance(text, str):
            return False
        normalized = text.strip()
        if not normalized:
            return False
        return any(pattern.search(normalized) for pattern in self.patterns)


_default_detector = ClaimDetector()


def has_fake_claim(text: str) -> bool:
    """Check text against the default claim patterns."""
    return _default_detector.has_fake_claim(text)


@dataclass(frozen=True)
class InvokedToolEntry:
    """One tool invocation within a turn."""

    name: str
    arguments: ToolArguments
    status: str  # success | error
    started_at: float
    finished_at: float
    result_summary: str
    raw_output: str


@dataclass(frozen=True)
class WebSearchSummary:
    """Condensed view of a successful web search."""

    result_count: int
    provider: str
    urls: list[str]


def parse_web_search_output(raw: str) -> WebSearchOutput | None:
    """Parse raw web_search output as structured JSON, or return None."""
    if not raw or not isinstance(raw, str):
        return None
    trimmed = raw.strip()
    if not trimmed.startswith("{"):
        return None
    try:
        return WebSearchOutput.model_validate_json(trimmed)
    except ValidationError:
        return None


def _scan_urls(raw: str) -> list[str]:
    return [match.rstrip(".,;:") for match in _URL_TOKEN.findall(raw or "")]


@dataclass
class ToolLedger:
    """Audit trail of tool availability and invocations for one turn.

    Entries are only ever appended. One ledger exists per turn; it is not
    persisted.
    """

    available_tools: list[str]
    invoked_tools: list[InvokedToolEntry] = field(default_factory=list)
    tool_outputs: list[str] = field(default_factory=list)
    web_search_tool: str = WEB_SEARCH_TOOL

    @classmethod
    def create(
        cls, available_tool_names: Iterable[str], web_search_tool: str = WEB_SEARCH_TOOL
    ) -> "ToolLedger":
        return cls(available_tools=list(available_tool_names), web_search_tool=web_search_tool)

    def record(
        self,
        name: str,
        arguments: ToolArguments,
        status: str,
        summary: str,
        raw_output: str,
        started_at: float | None = None,
        finished_at: float | None = None,
    ) -> InvokedToolEntry:
        """Append an invocation to the ledger.

        Args:
            name: Tool name
            arguments: Arguments actually dispatched (copied)
            status: "success" or "error"
            summary: Short human-readable result summary
            raw_output: Raw tool output
            started_at: Dispatch start time (defaults to finished_at)
            finished_at: Dispatch end time (defaults to now)

        Returns:
            The appended entry
        """
        finished = time.time() if finished_at is None else finished_at
        entry = InvokedToolEntry(
            name=name,
            arguments=dict(arguments),
            status=status,
            started_at=finished if started_at is None else started_at,
            finished_at=finished,
            result_summary=summary,
            raw_output=raw_output or "",
        )
        self.invoked_tools.append(entry)
        self.tool_outputs.append(entry.raw_output)
        logger.debug(f"Ledger recorded {name} ({status}), {len(self.invoked_tools)} total")
        return entry

    def _successful_searches(self) -> list[InvokedToolEntry]:
        return [
            entry
            for entry in self.invoked_tools
            if entry.name == self.web_search_tool and entry.status == "success"
        ]

    def web_search_succeeded(self) -> bool:
        """True iff at least one web search invocation succeeded."""
        return bool(self._successful_searches())

    def last_web_search_result(self) -> WebSearchSummary | None:
        """Summarize the most recent successful web search with structured output."""
        for entry in reversed(self._successful_searches()):
            parsed = parse_web_search_output(entry.raw_output)
            if parsed is None:
                continue
            return WebSearchSummary(
                result_count=parsed.result_count,
                provider=parsed.provider,
                urls=[item.url for item in parsed.results if item.url],
            )
        return None

    def sources_used(self) -> list[str]:
        """Distinct source URLs from all successful web searches, in first-seen order."""
        urls: list[str] = []
        for entry in self._successful_searches():
            parsed = parse_web_search_output(entry.raw_output)
            if parsed is not None and parsed.results:
                urls.extend(item.url for item in parsed.results if item.url)
            else:
                urls.extend(_scan_urls(entry.raw_output))
        return list(dict.fromkeys(urls))[:MAX_SOURCE_URLS]

    def tools_used(self) -> list[str]:
        """Distinct names of invoked tools, in first-invocation order."""
        return list(dict.fromkeys(entry.name for entry in self.invoked_tools))

    def build_provenance_footer(self, generated_at: datetime | None = None) -> str:
        """Build the provenance block appended to tool-written content.

        Args:
            generated_at: Timestamp to report (defaults to now, UTC)

        Returns:
            The footer text, starting with a newline
        """
        when = generated_at or datetime.now(timezone.utc)
        tools_used = self.tools_used()
        sources = self.sources_used() if self.web_search_succeeded() else []
        last_search = self.last_web_search_result()

        lines = [
            "",
            "---",
            "Provenance",
            f"- Generated at: {when.isoformat().replace('+00:00', 'Z')}",
            f"- Tools used: {', '.join(tools_used) if tools_used else 'none'}",
        ]
        if last_search is not None and last_search.provider:
            lines.append(f"- Web search provider: {last_search.provider}")
        if sources:
            lines.append("- Source URLs:")
            lines.extend(f"  {url}" for url in sources)
        else:
            lines.append(f"- Source URLs: {OFFLINE_MARKER}")
        lines.append(f"- Notes: {PROVENANCE_DISCLAIMER}")
        lines.append("---")
        return "\n".join(lines)
