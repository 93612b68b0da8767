"""Incremental parser for the chat SSE record stream.

Records are separated by a blank line and carry one ``data: <json>`` line.
A record that fails to decode is logged and dropped; it never aborts the
stream, so one bad record cannot lose the rest of the response.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from todochat.schemas.streaming import StreamEvent, event_to_wire, parse_stream_event

logger = logging.getLogger(__name__)

RECORD_SEPARATOR = "\n\n"
DATA_PREFIX = "data: "

# Longest payload excerpt included in parse-failure log lines
_LOG_PREVIEW = 200


class SSERecordParser:
    """Accumulates decoded text and yields complete StreamEvents.

    Usage::

        parser = SSERecordParser()
        async for text in response.aiter_text():
            for event in parser.feed(text):
                ...
        for event in parser.flush():
            ...
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.skipped = 0

    @property
    def pending(self) -> str:
        """Text of the trailing partial record not yet terminated."""
        return self._buffer

    def feed(self, text: str) -> list[StreamEvent]:
        """Append decoded text and return the events of every completed record."""
        if not text:
            return []
        self._buffer = (self._buffer + text).replace("\r\n", "\n")
        *records, self._buffer = self._buffer.split(RECORD_SEPARATOR)
        return self._parse_records(records)

    def flush(self) -> list[StreamEvent]:
        """Parse whatever remains once the stream has ended."""
        remainder, self._buffer = self._buffer, ""
        if not remainder.strip():
            return []
        return self._parse_records(remainder.split(RECORD_SEPARATOR))

    def _parse_records(self, records: list[str]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for record in records:
            event = self._parse_record(record)
            if event is not None:
                events.append(event)
        return events

    def _parse_record(self, record: str) -> StreamEvent | None:
        data_lines = [
            line[len(DATA_PREFIX):]
            for line in record.split("\n")
            if line.startswith(DATA_PREFIX)
        ]
        if not data_lines:
            if record.strip():
                logger.debug("Ignoring non-data record: %r", record[:_LOG_PREVIEW])
            return None

        raw = "\n".join(data_lines)
        try:
            return parse_stream_event(json.loads(raw))
        except json.JSONDecodeError as e:
            self.skipped += 1
            logger.warning(
                "Skipping malformed stream record (%s): %r", e.msg, raw[:_LOG_PREVIEW]
            )
        except ValidationError as e:
            self.skipped += 1
            logger.warning(
                "Skipping unrecognized stream record (%d errors): %r",
                e.error_count(), raw[:_LOG_PREVIEW],
            )
        return None


def encode_event(event: StreamEvent) -> str:
    """Render one event in wire form: ``data: <json>`` plus a blank line."""
    payload = json.dumps(event_to_wire(event), ensure_ascii=False)
    return f"{DATA_PREFIX}{payload}{RECORD_SEPARATOR}"
