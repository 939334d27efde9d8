"""
Command-line entry point: recover tool calls and clean text from model output.

    llm-recover response.txt          parse a saved raw response
    llm-recover - < response.txt      parse stdin
    llm-recover --prompt "list files" ask the configured model, parse the stream
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from config import load_settings
from diagnostics import ConsoleLogger, MultiLogger, TraceLogger
from llm import aiter_fragments, stream_fragments
from response_parser import ResponseParser
from ui import console, display_error, display_parsed_result, display_thinking

# Minimal instruction so the model emits directives in the expected shape
TOOL_CALL_INSTRUCTION = (
    "When you need a tool, emit exactly one JSON object per call on its own line: "
    '{"tool_call": {"name": "<tool>", "arguments": {...}}}. '
    "Otherwise answer in plain prose."
)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Recover tool calls and clean prose from raw LLM responses"
    )
    parser.add_argument(
        "source",
        nargs="?",
        default="-",
        help="File holding a raw model response, or '-' for stdin (default)",
    )
    parser.add_argument(
        "--prompt",
        help="Send this prompt to the configured model and parse the streamed reply",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the parsed result as JSON",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Show parser diagnostics",
    )
    parser.add_argument(
        "--trace",
        metavar="FILE",
        help="Append parser diagnostics to a JSONL trace file",
    )
    parser.add_argument(
        "--hide-skipped",
        action="store_true",
        help="Do not show rejected tool-call candidates",
    )
    return parser.parse_args(argv)


def build_logger(debug: bool, trace_file: Optional[str]):
    console_logger = ConsoleLogger(verbose=debug)
    if trace_file:
        return MultiLogger(console_logger, TraceLogger(trace_file))
    return console_logger


def read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def run_prompt(parser: ResponseParser, prompt: str, settings):
    messages = [
        {"role": "system", "content": TOOL_CALL_INSTRUCTION},
        {"role": "user", "content": prompt},
    ]
    fragments = aiter_fragments(stream_fragments(messages, settings))
    return asyncio.run(parser.parse_streaming(fragments))


def main(argv=None) -> int:
    args = parse_args(argv)
    settings = load_settings()
    debug = args.debug or settings.debug
    trace_file = args.trace or settings.trace_file

    parser = ResponseParser(logger=build_logger(debug, trace_file))

    if args.prompt:
        display_thinking()
        try:
            result = run_prompt(parser, args.prompt, settings)
        except (KeyboardInterrupt, asyncio.CancelledError):
            console.print()
            display_error("cancelled")
            return 130
    else:
        try:
            raw = read_source(args.source)
        except (OSError, UnicodeDecodeError) as e:
            display_error(f"Error reading {args.source}: {e}")
            return 1
        result = parser.parse(raw)

    if args.json:
        console.print_json(data=result.to_dict())
    else:
        display_parsed_result(result, show_skipped=not args.hide_skipped)
    return 0


if __name__ == "__main__":
    sys.exit(main())
