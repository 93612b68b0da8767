"""HTTP stream reader for the chat SSE endpoint.

Opens the POST request, decodes the body incrementally and yields typed
StreamEvents in wire order. Cancelling the consuming task closes the
response, which aborts the underlying connection.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx

from todochat.errors import StreamHTTPError
from todochat.schemas.streaming import StreamEvent
from todochat.streaming.parser import SSERecordParser

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 120.0

# Longest error body kept on StreamHTTPError
_MAX_ERROR_BODY = 2000


class StreamReader:
    """Pulls StreamEvents from the chat endpoint.

    The reader does not own the httpx client; the caller opens and closes it
    so connection pooling survives across turns.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client
        self._url = url
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    async def events(self, payload: dict[str, Any]) -> AsyncIterator[StreamEvent]:
        """POST ``payload`` and yield events until the stream ends.

        Raises:
            StreamHTTPError: If the endpoint answers with a non-2xx status.
            httpx.HTTPError: On connection or read failures.
        """
        parser = SSERecordParser()
        headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache"}

        async with self._client.stream(
            "POST", self._url, json=payload, headers=headers, timeout=self._timeout,
        ) as response:
            logger.debug("Stream opened: %s -> %d", self._url, response.status_code)
            if response.is_error:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise StreamHTTPError(response.status_code, body[:_MAX_ERROR_BODY])

            async for text in response.aiter_text():
                for event in parser.feed(text):
                    yield event

        for event in parser.flush():
            yield event

        if parser.skipped:
            logger.info("Stream finished with %d unparseable records", parser.skipped)
