# telemetry/sse.py
"""
Incremental parser for the server-sent events wire format.

Feed raw chunks from the HTTP body as they arrive; complete events are
returned once their terminating blank line has been seen. Chunks may split
lines, CRLF pairs and multi-byte UTF-8 characters anywhere.
"""
import codecs
from dataclasses import dataclass
from typing import List, Optional, Union


@dataclass
class SseEvent:
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


class SseParser:
    """
    Stateful SSE line parser.

    Usage:
        parser = SseParser()
        for chunk in body:
            for event in parser.feed(chunk):
                ...
    """

    def __init__(self):
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending_cr = False
        self._event_name = ""
        self._data_lines: List[str] = []
        self._last_id: Optional[str] = None
        self._retry: Optional[int] = None

    def feed(self, chunk: Union[bytes, str]) -> List[SseEvent]:
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._decoder.decode(bytes(chunk))
        if not chunk:
            return []

        # "\r\n" split across chunks: drop the "\n" that completes a CR we already used
        if self._pending_cr and chunk.startswith("\n"):
            chunk = chunk[1:]
        self._pending_cr = False

        self._buffer += chunk
        events = []

        while True:
            line_end = self._find_line_end()
            if line_end is None:
                break
            index, width = line_end
            line = self._buffer[:index]
            self._buffer = self._buffer[index + width:]

            event = self._process_line(line)
            if event is not None:
                events.append(event)

        return events

    def _find_line_end(self):
        cr = self._buffer.find("\r")
        lf = self._buffer.find("\n")
        if cr == -1 and lf == -1:
            return None
        if cr == -1 or (lf != -1 and lf < cr):
            return lf, 1
        if cr + 1 < len(self._buffer):
            return cr, 2 if self._buffer[cr + 1] == "\n" else 1
        # CR is the last character we have; the LF may follow in the next chunk
        self._pending_cr = True
        return cr, 1

    def _process_line(self, line: str) -> Optional[SseEvent]:
        if line == "":
            return self._dispatch()

        if line.startswith(":"):
            return None  # comment / keep-alive

        if ":" in line:
            field, value = line.split(":", 1)
            if value.startswith(" "):
                value = value[1:]
        else:
            field, value = line, ""

        if field == "event":
            self._event_name = value
        elif field == "data":
            self._data_lines.append(value)
        elif field == "id":
            if "\0" not in value:
                self._last_id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> Optional[SseEvent]:
        if not self._data_lines:
            self._event_name = ""
            return None

        event = SseEvent(
            event=self._event_name or "message",
            data="\n".join(self._data_lines),
            id=self._last_id,
            retry=self._retry,
        )
        self._event_name = ""
        self._data_lines = []
        return event
