"""
Tool-call extraction and text cleanup for raw model responses.

Models embed tool calls as {"tool_call": {"name": ..., "arguments": {...}}}
inside free-form prose, often with stray braces, echoed tool output, invisible
characters and filler lead-ins. ResponseParser turns one raw response into a
ParsedResult: the tool invocations found (deduplicated, first-seen order) and
the prose left for display.
"""

import asyncio
import re
from typing import List, Optional, Tuple

from diagnostics import NullLogger, truncate_for_log
from models import (
    CandidateOutcome,
    ParsedResult,
    ResponseMetadata,
    ToolInvocation,
    to_tool_value,
    SKIP_DUPLICATE,
    SKIP_ERROR,
    SKIP_INVALID_JSON,
    SKIP_MISSING_NAME,
    SKIP_MISSING_WRAPPER,
)
from repair import JsonRepairService, extract_first_json_object

WRAPPER_KEY = "tool_call"
NAME_FIELD = "name"
ARGUMENTS_FIELD = "arguments"

# A directive is a wrapper object whose "tool_call" value is an object with a
# "name" string. The inner object may hold flat {...} values (argument objects)
# but nothing deeper.
WRAPPER_KEY_PATTERN = re.compile(r'"tool_call"\s*:\s*(?=\{)')
NAME_KEY_TAIL = re.compile(r'\s*:\s*"')
MAX_DIRECTIVE_DEPTH = 3

# Seconds between cancel_event checks while waiting on a stalled stream
CANCEL_POLL_INTERVAL = 0.05

ZERO_WIDTH = "\u200b-\u200f\ufeff"
ZERO_WIDTH_CHARS = re.compile(f"[{ZERO_WIDTH}]")

# "You" with zero-width characters between or after its letters
GARBAGE_YOU_PATTERN = re.compile(
    f"(?<![A-Za-z])Y[{ZERO_WIDTH}]*o[{ZERO_WIDTH}]*u[{ZERO_WIDTH}]*(?![A-Za-z])"
)

STRAY_BRACE_LINE = re.compile(r"^[ \t]*[{}][ \t]*$", re.MULTILINE)

# Field names that only show up when the model echoes raw tool results
RAW_RESULT_KEYS = ("contents", "recursive", "include_hidden", "sort_by")

RAW_JSON_FRAGMENT = re.compile(
    r'"[^"\n]+"\s*:\s*(?:\[[^\]]*\]|"[^"]*"|true|false|null|-?\d+(?:\.\d+)?)'
)

FILLER_LEAD_IN = re.compile(
    r"^[ \t]*(?:Let me|I['’]ll|I need to|Now I['’]ll|Try this:)[^.!?\n]*[.!?:]*",
    re.IGNORECASE | re.MULTILINE,
)


def _directive_end(text: str, start: int) -> int:
    """End index of the directive whose wrapper brace is at start, or -1.

    Walks one object with a string- and escape-aware brace scan and gives up as
    soon as the object nests too deep, holds a second child at wrapper level,
    closes without a "name" string, or runs off the end of text.
    """
    depth = 0
    children = 0
    has_name = False
    in_string = False
    escape = False
    string_start = 0
    for i in range(start, len(text)):
        c = text[i]
        if in_string:
            if escape:
                escape = False
            elif c == "\\":
                escape = True
            elif c == '"':
                in_string = False
                if (
                    depth == 2
                    and i - string_start == len(NAME_FIELD)
                    and text.startswith(NAME_FIELD, string_start)
                    and NAME_KEY_TAIL.match(text, i + 1)
                ):
                    has_name = True
            continue
        if c == '"':
            in_string = True
            string_start = i + 1
        elif c == "{":
            depth += 1
            if depth > MAX_DIRECTIVE_DEPTH:
                return -1
            if depth == 2:
                children += 1
                if children > 1:
                    return -1
        elif c == "}":
            depth -= 1
            if depth == 0:
                return i + 1 if has_name else -1
    return -1


def _tool_call_spans(text: str) -> List[Tuple[int, int]]:
    """(start, end) of each directive in text, non-overlapping, in order."""
    spans = []
    cursor = 0
    scanned = 0
    last_brace = -1
    for match in WRAPPER_KEY_PATTERN.finditer(text):
        pos = match.start()
        if pos < cursor:
            continue
        # Nearest brace before the key; it must open the wrapper object
        found = max(text.rfind("{", scanned, pos), text.rfind("}", scanned, pos))
        if found >= 0:
            last_brace = found
        scanned = pos
        if last_brace < cursor or text[last_brace] != "{":
            continue
        end = _directive_end(text, last_brace)
        if end > 0:
            spans.append((last_brace, end))
            cursor = end
    return spans


def find_tool_call_candidates(response: str) -> List[str]:
    """All substrings of response that look like a tool_call directive."""
    if not response:
        return []
    return [response[start:end] for start, end in _tool_call_spans(response)]


def _remove_directives(text: str) -> str:
    pieces = []
    last = 0
    for start, end in _tool_call_spans(text):
        pieces.append(text[last:start])
        last = end
    pieces.append(text[last:])
    return "".join(pieces)


def _strip_garbage_you(match) -> str:
    token = match.group(0)
    return "" if ZERO_WIDTH_CHARS.search(token) else token


def _clean_pass(text: str) -> str:
    cleaned = _remove_directives(text)
    cleaned = GARBAGE_YOU_PATTERN.sub(_strip_garbage_you, cleaned)
    cleaned = STRAY_BRACE_LINE.sub("", cleaned)

    if any(f'"{key}"' in cleaned for key in RAW_RESULT_KEYS):
        cleaned = RAW_JSON_FRAGMENT.sub("", cleaned)

    cleaned = FILLER_LEAD_IN.sub("", cleaned)

    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r" \n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def clean_response_text(response: str) -> str:
    """Strip directives, artifacts, echoed tool output and filler from a response.

    The cleanup pass is repeated until the text stops changing, so cleaning
    already-clean text is a no-op. Every pass only removes or shrinks content.
    """
    if not response or not response.strip():
        return ""
    cleaned = _clean_pass(response)
    while True:
        again = _clean_pass(cleaned)
        if again == cleaned:
            return cleaned
        cleaned = again


class ToolCallExtractor:
    """Find tool_call directives in a response and turn them into invocations."""

    def __init__(self, repair_service: Optional[JsonRepairService] = None, logger=None):
        self.logger = logger or NullLogger()
        self.repair = repair_service or JsonRepairService(logger=self.logger)

    def extract_tool_calls(self, response: str) -> List[ToolInvocation]:
        return [o.invocation for o in self.extract_outcomes(response) if o.ok]

    def extract_outcomes(self, response: str) -> List[CandidateOutcome]:
        """One outcome per candidate, in the order candidates appear in response."""
        outcomes = []
        seen = set()
        for candidate in find_tool_call_candidates(response):
            try:
                outcome = self._parse_candidate(candidate)
            except Exception as e:
                self.logger.warning(
                    f"Failed to parse tool call from match: {truncate_for_log(candidate)} ({e})"
                )
                outcome = CandidateOutcome(source=candidate, skip_reason=SKIP_ERROR)

            if outcome.ok:
                key = outcome.invocation.dedup_key()
                if key in seen:
                    self.logger.debug(f"Skipping duplicate tool call: {outcome.invocation.tool_id}")
                    outcome = CandidateOutcome(source=candidate, skip_reason=SKIP_DUPLICATE)
                else:
                    seen.add(key)
                    self.logger.debug(f"Extracted tool call: {outcome.invocation.tool_id}")
            outcomes.append(outcome)
        return outcomes

    def _parse_candidate(self, candidate: str) -> CandidateOutcome:
        self.logger.debug(f"Attempting to parse tool call JSON: {truncate_for_log(candidate)}")
        parsed = self.repair.safe_parse(candidate, fallback=None, expected_type=dict)
        if parsed is None:
            return CandidateOutcome(source=candidate, skip_reason=SKIP_INVALID_JSON)

        tool_call = parsed.get(WRAPPER_KEY)
        if not isinstance(tool_call, dict):
            return CandidateOutcome(source=candidate, skip_reason=SKIP_MISSING_WRAPPER)

        name = tool_call.get(NAME_FIELD)
        tool_id = "" if name is None else str(name).strip()
        if not tool_id:
            self.logger.debug("No tool name found in tool call object")
            return CandidateOutcome(source=candidate, skip_reason=SKIP_MISSING_NAME)

        parameters = self._extract_parameters(tool_call.get(ARGUMENTS_FIELD))
        return CandidateOutcome(
            source=candidate,
            invocation=ToolInvocation(tool_id=tool_id, parameters=parameters),
        )

    def _extract_parameters(self, arguments) -> dict:
        if arguments is None:
            return {}
        if isinstance(arguments, str):
            # Arguments delivered as a JSON-encoded string
            arguments = self.repair.safe_parse(arguments, fallback={}, expected_type=dict)
        if isinstance(arguments, dict):
            return to_tool_value(arguments)
        self.logger.debug(f"Ignoring non-object arguments of type {type(arguments).__name__}")
        return {}


class ResponseParser:
    """Parse a full model response into tool invocations and display text."""

    def __init__(self, repair_service: Optional[JsonRepairService] = None, logger=None):
        self.logger = logger or NullLogger()
        self.repair = repair_service or JsonRepairService(logger=self.logger)
        self.extractor = ToolCallExtractor(self.repair, logger=self.logger)

    def parse(self, response) -> ParsedResult:
        if isinstance(response, bytes):
            response = response.decode("utf-8", errors="replace")
        if not isinstance(response, str) or not response.strip():
            self.logger.debug("Empty response received")
            return ParsedResult(
                metadata=ResponseMetadata(is_complete=True, finish_reason="empty", total_chunks=0)
            )

        self.logger.debug(f"Parsing response of length {len(response)}")
        outcomes = self.extractor.extract_outcomes(response)
        invocations = [o.invocation for o in outcomes if o.ok]
        skipped = [o for o in outcomes if not o.ok]
        self.logger.debug(f"Found {len(invocations)} tool calls ({len(skipped)} skipped)")

        cleaned = clean_response_text(response)
        self.logger.debug(f"Cleaned text length: {len(cleaned)}")

        return ParsedResult(
            tool_invocations=invocations,
            cleaned_text=cleaned,
            metadata=ResponseMetadata(is_complete=True, finish_reason="complete", total_chunks=1),
            skipped=skipped,
        )

    async def parse_streaming(self, fragments, cancel_event=None) -> ParsedResult:
        """Collect every fragment of a streamed response, then parse it whole.

        Cancelling the awaiting task, or setting cancel_event, raises
        asyncio.CancelledError; no partial result is ever returned.
        """
        parts = []
        chunk_count = 0
        iterator = fragments.__aiter__()
        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    raise asyncio.CancelledError("response stream cancelled")
                try:
                    fragment = await self._next_fragment(iterator, cancel_event)
                except StopAsyncIteration:
                    break
                chunk_count += 1
                if fragment:
                    parts.append(fragment)
            if cancel_event is not None and cancel_event.is_set():
                raise asyncio.CancelledError("response stream cancelled")
        except asyncio.CancelledError:
            self.logger.debug(f"Stream cancelled after {chunk_count} chunks")
            await self._close(iterator)
            raise

        result = self.parse("".join(parts))
        result.metadata = ResponseMetadata(
            is_complete=True, finish_reason="stream_complete", total_chunks=chunk_count
        )
        self.logger.debug(f"Parsed streaming response: {chunk_count} chunks")
        return result

    @staticmethod
    async def _next_fragment(iterator, cancel_event):
        """Await the next fragment, raising CancelledError once cancel_event is set."""
        if cancel_event is None:
            return await iterator.__anext__()
        pending = asyncio.ensure_future(iterator.__anext__())
        try:
            while True:
                done, _ = await asyncio.wait({pending}, timeout=CANCEL_POLL_INTERVAL)
                if done:
                    return pending.result()
                if cancel_event.is_set():
                    raise asyncio.CancelledError("response stream cancelled")
        finally:
            if not pending.done():
                pending.cancel()
                await asyncio.wait({pending})

    @staticmethod
    async def _close(fragments) -> None:
        aclose = getattr(fragments, "aclose", None)
        if aclose is not None:
            await aclose()

    def extract_tool_calls(self, response: str) -> List[ToolInvocation]:
        return self.extractor.extract_tool_calls(response)

    def clean_response_text(self, response: str) -> str:
        return clean_response_text(response)

    @staticmethod
    def extract_first_json_object(text: str) -> Optional[str]:
        return extract_first_json_object(text)
