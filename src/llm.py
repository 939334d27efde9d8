"""
LLM client for an OpenAI-compatible chat endpoint (LM Studio by default).

Produces raw response text, either whole or as streamed fragments, for the
response parser. Tool calls are expected inline in the content, so no tools
payload is sent.
"""

import asyncio
import json
from typing import Iterator, Optional

import requests

from config import Settings, load_settings


def build_payload(messages: list, settings: Settings, stream: bool = False, max_tokens: int = 4096) -> dict:
    payload = {
        "messages": messages,
        "temperature": 0.7,
        "max_tokens": max_tokens,
        "stream": stream,
    }
    if settings.model:
        payload["model"] = settings.model
    return payload


def complete(messages: list, settings: Optional[Settings] = None) -> Optional[str]:
    """Send messages and return the reply content, or None on a request error."""
    settings = settings or load_settings()
    payload = build_payload(messages, settings, stream=False)
    try:
        response = requests.post(settings.chat_url, json=payload, timeout=settings.request_timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        _report_error(e)
        return None
    try:
        return data["choices"][0]["message"].get("content") or ""
    except (KeyError, IndexError, TypeError, AttributeError):
        _report_error(f"unexpected response shape: {str(data)[:200]}")
        return None


def stream_fragments(messages: list, settings: Optional[Settings] = None) -> Iterator[str]:
    """Yield content fragments from a streamed completion (server-sent events)."""
    settings = settings or load_settings()
    payload = build_payload(messages, settings, stream=True)
    try:
        response = requests.post(
            settings.chat_url, json=payload, stream=True, timeout=settings.request_timeout
        )
        response.raise_for_status()

        for line in response.iter_lines():
            if not line:
                continue

            line_text = line.decode("utf-8") if isinstance(line, bytes) else line
            if not line_text.startswith("data: "):
                continue

            data = line_text[6:]  # Remove "data: " prefix
            if data == "[DONE]":
                break

            try:
                chunk = json.loads(data)
            except json.JSONDecodeError:
                continue

            choices = chunk.get("choices") or [{}]
            content = (choices[0].get("delta") or {}).get("content")
            if content:
                yield content

    except requests.exceptions.RequestException as e:
        _report_error(e)


async def aiter_fragments(fragments: Iterator[str]):
    """Expose a blocking fragment iterator as an async iterator.

    Each next() runs in a worker thread so the event loop can cancel between
    fragments.
    """
    sentinel = object()
    iterator = iter(fragments)
    while True:
        fragment = await asyncio.to_thread(next, iterator, sentinel)
        if fragment is sentinel:
            return
        yield fragment


def _report_error(error) -> None:
    from ui import console
    console.print(f"[bold magenta]Error calling LLM:[/bold magenta] {error}")
