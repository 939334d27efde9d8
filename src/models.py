"""
Data types shared by the response parser.

Tool arguments use Python's JSON value types as their value model:
str, int, float, bool, None, list and dict (string keys).
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

ToolValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

# Skip reasons recorded per tool-call candidate
SKIP_INVALID_JSON = "invalid_json"
SKIP_MISSING_WRAPPER = "missing_wrapper"
SKIP_MISSING_NAME = "missing_name"
SKIP_DUPLICATE = "duplicate"
SKIP_ERROR = "error"


def to_tool_value(node: Any) -> ToolValue:
    """Convert a decoded JSON node into the tool value model."""
    if node is None or isinstance(node, (bool, str)):
        return node
    if isinstance(node, int):
        if INT64_MIN <= node <= INT64_MAX:
            return node
        try:
            return float(node)
        except OverflowError:
            return str(node)
    if isinstance(node, float):
        return node
    if isinstance(node, dict):
        return {str(k): to_tool_value(v) for k, v in node.items()}
    if isinstance(node, (list, tuple)):
        return [to_tool_value(v) for v in node]
    return str(node)


def canonical_json(value: Any) -> str:
    """Deterministic serialization used only for duplicate detection."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass
class ToolInvocation:
    tool_id: str
    parameters: Dict[str, ToolValue] = field(default_factory=dict)

    def dedup_key(self) -> tuple:
        return (self.tool_id, canonical_json(self.parameters))

    def to_dict(self) -> dict:
        return {"name": self.tool_id, "arguments": self.parameters}


@dataclass
class CandidateOutcome:
    """Result of handling one tool-call candidate: an invocation or a skip reason."""
    source: str
    invocation: Optional[ToolInvocation] = None
    skip_reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.invocation is not None and self.skip_reason is None


@dataclass
class ResponseMetadata:
    is_complete: bool = True
    finish_reason: str = "complete"
    total_chunks: int = 1


@dataclass
class ParsedResult:
    tool_invocations: List[ToolInvocation] = field(default_factory=list)
    cleaned_text: str = ""
    metadata: ResponseMetadata = field(default_factory=ResponseMetadata)
    skipped: List[CandidateOutcome] = field(default_factory=list)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_invocations)

    def to_dict(self) -> dict:
        return {
            "tool_calls": [inv.to_dict() for inv in self.tool_invocations],
            "text": self.cleaned_text,
            "metadata": {
                "is_complete": self.metadata.is_complete,
                "finish_reason": self.metadata.finish_reason,
                "total_chunks": self.metadata.total_chunks,
            },
            "skipped": [
                {"reason": s.skip_reason, "source": s.source} for s in self.skipped
            ],
        }
