"""Response capture for upstream handlers.

ResponseCapture stands in for the real writer while the upstream handler
runs. Nothing reaches the client until the engine emits the rewritten
response.
"""

from __future__ import annotations

import logging

from starlette.datastructures import MutableHeaders
from starlette.types import Message

from changeresponse.context import CapturedResponse
from changeresponse.errors import MissingStatusError
from changeresponse.protocol import ResponseWriter

logger = logging.getLogger(__name__)


class ResponseCapture:
    """Buffers status, headers and body written by an upstream handler.

    The whole body is held in memory for the life of the request. Bounding
    upstream body size is left to the surrounding deployment.

    Attributes:
        writer: Real writer used for the final emission
        headers: Header multimap filled by the upstream handler
        status: Declared status, None until the upstream declares one
    """

    def __init__(self, writer: ResponseWriter) -> None:
        self.writer = writer
        self.headers = MutableHeaders()
        self.status: int | None = None
        self._body = bytearray()

    def declare_status(self, code: int) -> None:
        """Record the status code. Later calls overwrite earlier ones."""
        self.status = code

    def write(self, data: bytes) -> int:
        """Append data to the body buffer.

        Returns:
            Number of bytes accepted (always len(data))
        """
        self._body.extend(data)
        return len(data)

    @property
    def body(self) -> bytes:
        return bytes(self._body)

    async def __call__(self, message: Message) -> None:
        """ASGI send replacement."""
        message_type = message["type"]

        if message_type == "http.response.start":
            self.declare_status(int(message["status"]))
            for name, value in message.get("headers", []):
                self.headers.append(name.decode("latin-1"), value.decode("latin-1"))
        elif message_type == "http.response.body":
            self.write(message.get("body", b""))
        else:
            logger.debug("Ignoring ASGI message during capture: %s", message_type)

    def to_captured(self) -> CapturedResponse:
        """Snapshot the capture as the engine's working state.

        Raises:
            MissingStatusError: If the upstream never declared a status
        """
        if self.status is None:
            raise MissingStatusError("upstream handler returned without declaring a status")

        return CapturedResponse(
            original_status=self.status,
            headers=MutableHeaders(raw=list(self.headers.raw)),
            body=bytearray(self._body),
        )
