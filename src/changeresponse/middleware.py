"""ASGI middleware that rewrites upstream responses by status code.

Wraps any ASGI app (Starlette, FastAPI, a reverse proxy app). The wrapped
app writes into a ResponseCapture; once it returns, the override engine
emits the rewritten response to the real `send`.

    app.add_middleware(ChangeResponseMiddleware, config=config)
"""

from __future__ import annotations

import logging

from starlette.types import ASGIApp, Receive, Scope, Send

from changeresponse.capture import ResponseCapture
from changeresponse.config import ChangeResponseConfig
from changeresponse.engine import Notifier, OverrideEngine
from changeresponse.protocol import ASGIResponseWriter

logger = logging.getLogger(__name__)


class ChangeResponseMiddleware:
    """ASGI middleware applying override rules to every HTTP response.

    Uses raw ASGI instead of BaseHTTPMiddleware so the upstream's status
    and body can be held back until the rules have run. Non-HTTP scopes
    (websocket, lifespan) pass straight through.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: ChangeResponseConfig | None = None,
        name: str | None = None,
        *,
        info: Notifier | None = None,
        error: Notifier | None = None,
    ) -> None:
        self.app = app
        self.engine = OverrideEngine(config, name, info=info, error=error)
        logger.info(
            "changeresponse middleware %s ready with %d override rule(s)",
            self.engine.name,
            len(self.engine.rules),
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        capture = ResponseCapture(ASGIResponseWriter(send))
        await self.app(scope, receive, capture)
        await self.engine.process(capture)
