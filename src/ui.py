"""
UI components and display helpers using Rich.

Renders parsed responses: tool calls, skipped candidates and cleaned text.
"""

import json

from rich.console import Console
from rich.panel import Panel
from rich.markdown import Markdown
from rich.text import Text
from rich.style import Style
from rich.theme import Theme

# Cyberpunk color scheme
CYBER_THEME = Theme({
    "cyan": "#00D9FF",
    "magenta": "#FF10F0",
    "neon_green": "#39FF14",
    "dim_cyan": "dim #00D9FF",
    "bright_white": "bright_white",
})

console = Console(theme=CYBER_THEME)

# Styles
STYLE_TOOL_CALL = Style(color="#00D9FF", bold=True)
STYLE_SKIPPED = Style(color="#FF10F0")
STYLE_THINKING = Style(color="#00D9FF", dim=True)
STYLE_SUCCESS = Style(color="#39FF14")
STYLE_ERROR = Style(color="#FF10F0", bold=True)


def format_tool_call(tool_id: str, parameters: dict) -> str:
    """Render an invocation as name(key=value, ...)."""
    if not parameters:
        return f"{tool_id}()"
    args_display = ", ".join(
        f"{k}={json.dumps(v, ensure_ascii=False)}" for k, v in parameters.items()
    )
    return f"{tool_id}({args_display})"


def display_tool_call(tool_id: str, parameters: dict):
    """Display a tool call in a cyan panel."""
    panel = Panel(
        Text(format_tool_call(tool_id, parameters), style=STYLE_TOOL_CALL),
        title="[bold #00D9FF]TOOL CALL[/bold #00D9FF]",
        title_align="left",
        border_style="#00D9FF",
        padding=(0, 1),
    )
    console.print(panel)


def display_skipped(reason: str, source: str):
    """Display a rejected tool-call candidate in a magenta panel."""
    preview = source[:200] + "..." if len(source) > 200 else source

    panel = Panel(
        Text(preview, style=STYLE_SKIPPED),
        title=f"[bold #FF10F0]SKIPPED ({reason})[/bold #FF10F0]",
        title_align="left",
        border_style="#FF10F0",
        padding=(0, 1),
    )
    console.print(panel)


def display_thinking():
    text = Text("waiting for model...", style=STYLE_THINKING)
    console.print(text)


def display_response(content: str):
    """Display cleaned response text as rendered markdown."""
    if content:
        console.print()
        console.print(Markdown(content))


def display_error(message: str):
    console.print(Text(message, style=STYLE_ERROR))


def display_parsed_result(result, show_skipped: bool = True):
    """Render a ParsedResult: tool calls first, then the prose."""
    for invocation in result.tool_invocations:
        display_tool_call(invocation.tool_id, invocation.parameters)
    if show_skipped:
        for outcome in result.skipped:
            display_skipped(outcome.skip_reason, outcome.source)
    if result.cleaned_text:
        display_response(result.cleaned_text)
    elif not result.tool_invocations:
        console.print(Text("(no content)", style="dim"))
