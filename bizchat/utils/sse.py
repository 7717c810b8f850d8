"""Server-Sent-Events framing for the streamed chat endpoint.

Each text fragment travels as one OpenAI-style delta event:

    data: {"choices":[{"delta":{"content":"<fragment>"}}]}\\n\\n

and the stream ends with ``data: [DONE]\\n\\n``. SSEDecoder is the consuming
side: network chunks may split a line anywhere, so it buffers until a full
line is available.
"""

import codecs
import json
from typing import Iterable, Iterator

DONE_SENTINEL = "[DONE]"
DATA_PREFIX = "data: "


def encode_delta(content: str) -> str:
    """Frame one text fragment as a delta event."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"{DATA_PREFIX}{json.dumps(payload)}\n\n"


def encode_done() -> str:
    return f"{DATA_PREFIX}{DONE_SENTINEL}\n\n"


def sse_stream(fragments: Iterable[str]) -> Iterator[str]:
    """Frame text fragments as delta events followed by the [DONE] sentinel."""
    for fragment in fragments:
        yield encode_delta(fragment)
    yield encode_done()


class SSEDecoder:
    """
    Incremental decoder for delta event streams.

    feed() accepts arbitrary str/bytes chunks and returns the content
    fragments of every line completed by that chunk. Lines that are not
    data events, and data lines that are not valid JSON, are ignored.
    """

    def __init__(self) -> None:
        self._buffer = ""
        # Holds back a multi-byte character split across chunks; bad bytes become U+FFFD
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.done = False

    def feed(self, chunk: str | bytes) -> list[str]:
        text = self._utf8.decode(chunk) if isinstance(chunk, bytes) else chunk
        self._buffer += text

        *lines, self._buffer = self._buffer.split("\n")
        fragments = []
        for line in lines:
            content = self._parse_line(line.rstrip("\r"))
            if content:
                fragments.append(content)
        return fragments

    def _parse_line(self, line: str) -> str | None:
        if not line.startswith(DATA_PREFIX):
            return None
        data = line[len(DATA_PREFIX):].strip()
        if data == DONE_SENTINEL:
            self.done = True
            return None
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError:
            return None
        try:
            return parsed["choices"][0]["delta"].get("content")
        except (KeyError, IndexError, TypeError, AttributeError):
            return None


def iter_delta_content(chunks: Iterable[str | bytes]) -> Iterator[str]:
    """Yield content fragments from a raw event stream, however it is chunked."""
    decoder = SSEDecoder()
    for chunk in chunks:
        yield from decoder.feed(chunk)
        if decoder.done:
            return
