"""Mitmproxy addon script for use with mitmdump -s flag.

Loads changeresponse.yaml through the usual config discovery and rewrites
every response passing through mitmproxy.

Usage:
    CHANGERESPONSE_CONFIG_DIR=/etc/changeresponse \
        mitmdump --mode reverse:http://localhost:8000 -s script.py
"""

from __future__ import annotations

import logging
from typing import Any

from changeresponse.config import get_config
from changeresponse.errors import ConfigError
from changeresponse.mitm.addon import ChangeResponseAddon

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class ChangeResponseScript:
    """Mitmproxy addon script that wraps ChangeResponseAddon."""

    def __init__(self) -> None:
        self.addon: ChangeResponseAddon | None = None

    def load(self, loader: Any) -> None:  # noqa: ANN401
        """Called when addon is loaded by mitmproxy."""
        logger.info("Loading changeresponse mitmproxy addon...")

        config = get_config()
        try:
            self.addon = ChangeResponseAddon(config)
        except ConfigError as e:
            logger.error("Invalid changeresponse config %s: %s", config.config_path, e)
            raise

        logger.info(
            "changeresponse addon %s initialized with %d override rule(s)",
            self.addon.engine.name,
            len(self.addon.engine.rules),
        )

    async def response(self, flow: Any) -> None:  # noqa: ANN401
        """Handle HTTP response."""
        if self.addon:
            await self.addon.response(flow)


addons = [ChangeResponseScript()]
