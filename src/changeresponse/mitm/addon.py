"""Mitmproxy addon that applies override rules to upstream responses.

mitmproxy buffers the whole upstream response before the `response` hook
runs, so the flow's response plays the part of the captured response and
the rewritten result is written back into the same flow.
"""

from __future__ import annotations

import logging

from mitmproxy import http
from mitmproxy.net.http import status_codes
from starlette.datastructures import MutableHeaders

from changeresponse.capture import ResponseCapture
from changeresponse.config import ChangeResponseConfig
from changeresponse.engine import Notifier, OverrideEngine

logger = logging.getLogger(__name__)


class FlowResponseWriter:
    """ResponseWriter that stores the final response back into a flow."""

    def __init__(self, flow: http.HTTPFlow) -> None:
        self.flow = flow

    async def start(self, status: int, headers: MutableHeaders) -> None:
        response = self.flow.response
        assert response is not None
        response.status_code = status
        response.reason = status_codes.RESPONSES.get(status, "")
        # The body goes out as one buffer sized by Content-Length, never chunked
        response.headers = http.Headers([(k, v) for k, v in headers.raw if k != b"transfer-encoding"])

    async def write(self, body: bytes) -> None:
        response = self.flow.response
        assert response is not None
        response.raw_content = body


class ChangeResponseAddon:
    """Mitmproxy addon running the override engine on every response."""

    def __init__(
        self,
        config: ChangeResponseConfig,
        name: str | None = None,
        *,
        info: Notifier | None = None,
        error: Notifier | None = None,
    ) -> None:
        """Initialize the addon.

        Args:
            config: changeresponse configuration
            name: Instance name (defaults to config.name)
            info: Sink for diagnostic messages
            error: Sink for failure messages

        Raises:
            ConfigError: If the configuration is invalid
        """
        self.engine = OverrideEngine(config, name, info=info, error=error)

    def capture_flow(self, flow: http.HTTPFlow) -> ResponseCapture | None:
        """Load a flow's response into a ResponseCapture.

        Args:
            flow: HTTP flow object

        Returns:
            Capture ready for the engine, or None if the flow has no
            buffered response
        """
        response = flow.response
        if response is None:
            return None

        # Streamed responses have no buffered body to rewrite
        if response.raw_content is None:
            logger.debug("Skipping streamed response: %s", flow.request.pretty_url)
            return None

        capture = ResponseCapture(FlowResponseWriter(flow))
        capture.declare_status(response.status_code)
        for name, value in response.headers.fields:
            capture.headers.append(name.decode("latin-1"), value.decode("latin-1"))
        capture.write(response.raw_content)
        return capture

    async def response(self, flow: http.HTTPFlow) -> None:
        """Rewrite the response of a completed flow.

        Args:
            flow: HTTP flow object
        """
        capture = self.capture_flow(flow)
        if capture is None:
            return

        await self.engine.process(capture)
        logger.debug(
            "Processed response: %s (status: %d)",
            flow.request.pretty_url,
            flow.response.status_code if flow.response else 0,
        )
