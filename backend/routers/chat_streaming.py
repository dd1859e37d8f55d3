"""
MoonTV Advisor Chat Streaming - upstream SSE to browser SSE

The browser speaks one event format regardless of the chat provider:

    data: {"text": "<delta>"}\\n\\n
    ...
    data: [DONE]\\n\\n

Upstream formats differ per provider, so text extraction is a StreamAdapter
chosen by provider kind. Framing (UTF-8 boundaries, partial lines, the
sentinel) is shared in StreamNormalizer.
"""

import codecs
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterable, AsyncIterator, List, Optional

from errors import StreamError, log_error
from logging_config import log_message_out

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
DONE_EVENT = b"data: [DONE]\n\n"


def format_text_event(text: str) -> bytes:
    payload = json.dumps({"text": text}, ensure_ascii=False)
    return f"data: {payload}\n\n".encode("utf-8")


class StreamAdapter(ABC):
    """Pulls the incremental text out of one upstream JSON chunk."""

    kind: str = ""

    @abstractmethod
    def extract_text(self, chunk: Any) -> str:
        """Return the text delta, or "" when the chunk carries none."""
        ...


class OpenAIStreamAdapter(StreamAdapter):
    """``choices[0].delta.content``"""

    kind = "openai"

    def extract_text(self, chunk: Any) -> str:
        if not isinstance(chunk, dict):
            return ""
        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return ""
        content = delta.get("content")
        return content if isinstance(content, str) else ""


class ClaudeStreamAdapter(StreamAdapter):
    """``delta.text`` of ``content_block_delta`` events"""

    kind = "claude"

    def extract_text(self, chunk: Any) -> str:
        if not isinstance(chunk, dict) or chunk.get("type") != "content_block_delta":
            return ""
        delta = chunk.get("delta")
        if not isinstance(delta, dict):
            return ""
        text = delta.get("text")
        return text if isinstance(text, str) else ""


def get_stream_adapter(provider_kind: str) -> StreamAdapter:
    """Adapter for a chat provider kind ("openai", "custom" or "claude")."""
    if provider_kind == "claude":
        return ClaudeStreamAdapter()
    if provider_kind in ("openai", "custom"):
        return OpenAIStreamAdapter()
    raise ValueError("Unknown provider type: " + provider_kind)


class StreamNormalizer:
    """Incremental upstream-bytes to browser-events converter.

    Holds at most one partial UTF-8 sequence and one partial line between
    feeds. Emits the sentinel exactly once: when upstream sends it, or at
    finish() if it never did.
    """

    def __init__(self, adapter: StreamAdapter):
        self.adapter = adapter
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self.done_sent = False
        self.text_events = 0
        self.skipped = 0

    def feed(self, chunk: bytes) -> List[bytes]:
        self._pending += self._decoder.decode(chunk)
        *lines, self._pending = self._pending.split("\n")
        events = []
        for line in lines:
            event = self._process_line(line)
            if event is not None:
                events.append(event)
        return events

    def finish(self) -> List[bytes]:
        """Flush the trailing partial line and close with the sentinel."""
        self._pending += self._decoder.decode(b"", final=True)
        events = []
        if self._pending:
            event = self._process_line(self._pending)
            self._pending = ""
            if event is not None:
                events.append(event)
        if not self.done_sent:
            self.done_sent = True
            events.append(DONE_EVENT)
        return events

    def _process_line(self, line: str) -> Optional[bytes]:
        line = line.rstrip("\r")
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):].strip()
        if not payload:
            return None

        if payload == DONE_SENTINEL:
            if self.done_sent:
                return None
            self.done_sent = True
            return DONE_EVENT

        try:
            chunk = json.loads(payload)
        except json.JSONDecodeError as e:
            self.skipped += 1
            logger.warning(f"Skipping malformed stream chunk ({e.msg}): {payload[:100]!r}")
            return None

        text = self.adapter.extract_text(chunk)
        if not text:
            return None
        self.text_events += 1
        return format_text_event(text)


async def to_normalized_stream(upstream: AsyncIterable[bytes], provider_kind: str) -> AsyncIterator[bytes]:
    """Re-emit an upstream provider stream as browser events.

    Output order follows upstream line order. A malformed chunk is skipped;
    an error while reading upstream is logged and re-raised as StreamError,
    so the consumer sees a truncated stream without the sentinel.
    """
    normalizer = StreamNormalizer(get_stream_adapter(provider_kind))

    try:
        async for chunk in upstream:
            for event in normalizer.feed(chunk):
                yield event
    except Exception as e:
        err = StreamError(
            f"Upstream stream read failed after {normalizer.text_events} events",
            details=str(e),
            events=normalizer.text_events,
        )
        log_error(logger, err, context="Stream", include_traceback=False)
        log_message_out(logger, events=normalizer.text_events, done=False)
        raise err from e

    for event in normalizer.finish():
        yield event
    log_message_out(logger, events=normalizer.text_events, done=True)
