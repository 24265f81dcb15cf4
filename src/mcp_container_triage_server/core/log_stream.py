"""Docker combined log stream decoding.

The runtime multiplexes stdout and stderr into one byte stream for containers
started without a TTY. Each frame is::

    [0]    stream tag (1 = stdout, anything else is treated as stderr)
    [1:4]  reserved
    [4:8]  payload length, big-endian uint32
    [8:]   payload

Decoding is lenient: a short header or a truncated trailing payload ends the
scan without raising, and everything decoded so far is kept.
"""

from __future__ import annotations

import re
import struct
from collections.abc import Iterable, Iterator

from .models import LogEntry, LogStream

HEADER = struct.Struct(">BxxxL")
STDOUT_TAG = 1
STDERR_TAG = 2

_TIMESTAMP_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d+Z)\s")


def _split_timestamp(text: str) -> tuple[str | None, str]:
    """Strip a leading RFC3339 timestamp if present."""
    m = _TIMESTAMP_RE.match(text)
    if not m:
        return None, text
    return m.group(1), text[m.end():]


def _make_entry(text: str, stream: LogStream, *, timestamps: bool) -> LogEntry:
    ts: str | None = None
    if timestamps:
        ts, text = _split_timestamp(text)
    # Trailing only: indentation inside multi-line payloads must survive.
    return LogEntry(timestamp=ts, stream=stream, message=text.rstrip())


def demultiplex(buffer: bytes, *, timestamps: bool = False) -> Iterator[LogEntry]:
    """Yield log entries from a framed combined-stream buffer."""
    view = memoryview(buffer)
    offset = 0
    total = len(view)

    while total - offset >= HEADER.size:
        tag, size = HEADER.unpack_from(view, offset)
        start = offset + HEADER.size
        end = start + size
        if end > total:
            break

        text = bytes(view[start:end]).decode("utf-8", errors="replace")
        stream = LogStream.STDOUT if tag == STDOUT_TAG else LogStream.STDERR
        yield _make_entry(text, stream, timestamps=timestamps)

        offset = end


def parse_log_stream(buffer: bytes, *, timestamps: bool = False) -> list[LogEntry]:
    """Collect demultiplex into a list."""
    return list(demultiplex(buffer, timestamps=timestamps))


def split_tty_output(buffer: bytes, *, timestamps: bool = False) -> list[LogEntry]:
    """Split raw (unframed) TTY output into stdout entries, one per line."""
    text = buffer.decode("utf-8", errors="replace")
    return [
        _make_entry(line, LogStream.STDOUT, timestamps=timestamps)
        for line in text.splitlines()
        if line.strip()
    ]


def encode_frame(stream: LogStream, payload: str | bytes) -> bytes:
    """Encode a single frame in the combined-stream format."""
    data = payload.encode("utf-8") if isinstance(payload, str) else payload
    tag = STDOUT_TAG if stream is LogStream.STDOUT else STDERR_TAG
    return HEADER.pack(tag, len(data)) + data


def encode_log_stream(entries: Iterable[LogEntry]) -> bytes:
    """Encode entries back into frames, re-prefixing timestamps when set."""
    out = bytearray()
    for e in entries:
        payload = f"{e.timestamp} {e.message}\n" if e.timestamp else f"{e.message}\n"
        out += encode_frame(e.stream, payload)
    return bytes(out)
