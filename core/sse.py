"""
Incremental decoder for OpenAI-style streamed completions.

The body arrives as ``data: {...}\\n`` lines terminated by ``data: [DONE]``.
Network reads split anywhere, including inside a JSON object or inside a
multi-byte UTF-8 character, so bytes go through an incremental UTF-8
decoder and a carry-over buffer holds the trailing partial line until the
next read completes it.
"""

import codecs
import json
from typing import Iterable, Iterator, List, Optional

from core.log import get_logger
from core.events import log_event, E

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


class SSEDeltaDecoder:
    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self.done = False
        self.bad_frames = 0

    def feed(self, data) -> List[str]:
        """Consume one network read and return the complete text deltas in it."""
        if self.done:
            return []
        text = data if isinstance(data, str) else self._decoder.decode(data)
        self._buffer += text
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._consume(lines)

    def finish(self) -> List[str]:
        """Flush a final frame the server did not newline-terminate."""
        if self.done:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        tail, self._buffer = self._buffer, ""
        return self._consume([tail])

    def _consume(self, lines: Iterable[str]) -> List[str]:
        deltas = []
        for line in lines:
            if self.done:
                break
            delta = self._parse_line(line)
            if delta:
                deltas.append(delta)
        return deltas

    def _parse_line(self, line: str) -> Optional[str]:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            return None
        payload = line[5:].strip()
        if not payload:
            return None
        if payload == DONE_SENTINEL:
            self.done = True
            return None
        try:
            parsed = json.loads(payload)
        except ValueError as e:
            return self._bad_frame(payload, e)
        if not isinstance(parsed, dict):
            return self._bad_frame(payload, "frame is not an object")
        choices = parsed.get("choices") or []
        if not isinstance(choices, list):
            return self._bad_frame(payload, "choices is not a list")
        if not choices:
            return None
        if not isinstance(choices[0], dict):
            return self._bad_frame(payload, "choice is not an object")
        delta = choices[0].get("delta")
        if delta is not None and not isinstance(delta, dict):
            return self._bad_frame(payload, "delta is not an object")
        content = (delta or {}).get("content")
        if isinstance(content, str) and content:
            return content
        return None

    def _bad_frame(self, payload: str, error) -> None:
        self.bad_frames += 1
        log_event(logger, E.AI_STREAM_BAD_FRAME, level="warning", frame=payload[:120], error=error)
        return None


def iter_deltas(chunks: Iterable) -> Iterator[str]:
    """Text deltas of a whole chunk sequence, in order, stopping at [DONE]."""
    decoder = SSEDeltaDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
    yield from decoder.finish()
