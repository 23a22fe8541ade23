"""The ResponseWriter protocol - the host-facing side of a rewrite."""

from __future__ import annotations

from typing import Protocol

from starlette.datastructures import MutableHeaders
from starlette.types import Send


class ResponseWriter(Protocol):
    """Destination for the final, rewritten response.

    Hosts supply one of these per request. The engine calls start() once
    and write() once, in that order.
    """

    async def start(self, status: int, headers: MutableHeaders) -> None:
        """Send the status line and headers."""
        ...

    async def write(self, body: bytes) -> None:
        """Send the complete body."""
        ...


class ASGIResponseWriter:
    """ResponseWriter over an ASGI send callable."""

    def __init__(self, send: Send) -> None:
        self.send = send

    async def start(self, status: int, headers: MutableHeaders) -> None:
        await self.send(
            {
                "type": "http.response.start",
                "status": status,
                "headers": list(headers.raw),
            }
        )

    async def write(self, body: bytes) -> None:
        await self.send({"type": "http.response.body", "body": body, "more_body": False})
