"""
Diagnostic logging sinks for the parser.

Parser components take a logger at construction; anything with debug(msg) and
warning(msg) works. Sinks never raise into the caller.
"""

import json
import threading
from datetime import datetime
from pathlib import Path

from rich.text import Text


class NullLogger:
    """Default sink: drops everything."""

    def debug(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass


class ConsoleLogger:
    """Print diagnostics as dim lines on the shared Rich console."""

    def __init__(self, verbose: bool = False, console=None):
        self.verbose = verbose
        self._console = console

    def _get_console(self):
        if self._console is None:
            from ui import console
            self._console = console
        return self._console

    def debug(self, message: str) -> None:
        if self.verbose:
            self._get_console().print(Text(f"  {message}", style="dim"))

    def warning(self, message: str) -> None:
        self._get_console().print(Text(f"  {message}", style="dim #FF10F0"))


class TraceLogger:
    """Append diagnostics to a JSONL trace file, one event per line."""

    def __init__(self, path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._failed = False

    def _write(self, level: str, message: str) -> None:
        if self._failed:
            return
        event = {
            "ts": datetime.now().isoformat(timespec="milliseconds"),
            "level": level,
            "message": message,
        }
        line = json.dumps(event, ensure_ascii=False)
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                # Report once, then stop tracing for this logger
                self._failed = True
                from ui import console
                console.print(Text(f"  trace disabled ({self.path}): {e}", style="dim #FF10F0"))

    def debug(self, message: str) -> None:
        self._write("debug", message)

    def warning(self, message: str) -> None:
        self._write("warning", message)


class MultiLogger:
    """Fan one event out to several sinks."""

    def __init__(self, *sinks):
        self.sinks = [s for s in sinks if s is not None]

    def debug(self, message: str) -> None:
        for sink in self.sinks:
            sink.debug(message)

    def warning(self, message: str) -> None:
        for sink in self.sinks:
            sink.warning(message)


def truncate_for_log(text: str, limit: int = 200) -> str:
    if text is None:
        return ""
    return text if len(text) <= limit else text[:limit] + "..."
