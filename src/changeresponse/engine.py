"""Override engine - applies override rules to a captured response.

One pass per request:

    capture → rewrite (match, header edits, body mode) → emit

Rules are matched against the status the upstream declared, never against
the status assigned by an earlier rule, so several rules sharing a `from`
code all fire, in declaration order.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pydantic import ValidationError

from changeresponse.capture import ResponseCapture
from changeresponse.config import DEFAULT_NAME, BodyMode, ChangeResponseConfig, OverrideRule
from changeresponse.context import CapturedResponse, headers_from_items
from changeresponse.errors import ConfigError, MissingStatusError, UnsupportedBodyModeError
from changeresponse.protocol import ResponseWriter

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]

MARKER_HEADER = "X-Applied-Override"

FALLBACK_STATUS = 500
FALLBACK_BODY = b"Internal Server Error"


class OverrideEngine:
    """Computes and emits the final response for each request.

    Attributes:
        config: Validated configuration; read-only after construction
        name: Instance name reported in diagnostics and the marker header
    """

    def __init__(
        self,
        config: ChangeResponseConfig | None,
        name: str | None = None,
        *,
        info: Notifier | None = None,
        error: Notifier | None = None,
    ) -> None:
        """Validate the configuration and build the engine.

        Args:
            config: Configuration with at least one override rule
            name: Instance name (defaults to config.name)
            info: Sink for diagnostic messages
            error: Sink for failure messages

        Raises:
            ConfigError: If the configuration is missing or malformed
        """
        if config is None:
            raise ConfigError("config must be defined")

        if not config.overrides:
            raise ConfigError("at least one override rule is required")

        for i, rule in enumerate(config.overrides, 1):
            if not rule.match_statuses:
                raise ConfigError(f"override rule #{i} must match at least one status code")
            # Rules may be built with model_construct, which skips validation
            try:
                OverrideRule.model_validate(rule.model_dump(by_alias=True))
            except ValidationError as e:
                raise ConfigError(f"override rule #{i} is invalid: {e}") from e

        self.config = config
        self.name = name or config.name or DEFAULT_NAME
        self.info: Notifier = info or logger.info
        self.error: Notifier = error or logger.error

        if config.debug:
            self.info(f"defined config {self.name}: {config.model_dump(by_alias=True, exclude={'config_path'})}")

    @property
    def rules(self) -> list[OverrideRule]:
        return self.config.overrides

    def rewrite(self, captured: CapturedResponse) -> bool:
        """Apply every matching rule to the captured response in place.

        Args:
            captured: Working state; status, headers and body are modified

        Returns:
            True if at least one rule matched

        Raises:
            UnsupportedBodyModeError: If a matching rule has an unknown body mode
        """
        original_status = captured.original_status
        applied = False

        for rule in self.rules:
            if not rule.matches(original_status):
                continue

            applied = True
            captured.working_status = rule.target_status

            for name in rule.remove_headers:
                del captured.headers[name]

            for name, values in rule.set_headers.items():
                del captured.headers[name]
                for value in values:
                    captured.headers.append(name, value)

            captured.body = apply_body_mode(rule, captured.body)

        captured.headers["Content-Length"] = str(len(captured.body))

        if applied and self.config.debug:
            captured.headers.append(MARKER_HEADER, self.name)

        return applied

    async def emit(self, captured: CapturedResponse, writer: ResponseWriter) -> None:
        """Send the final status, headers and body to the host writer."""
        await writer.start(captured.working_status, captured.headers)
        await writer.write(captured.content)

    async def process(self, capture: ResponseCapture) -> None:
        """Rewrite a captured upstream response and emit it.

        Failures before anything is sent produce a clean 500 response.
        Failures while sending are reported and not retried: the status
        line may already be on the wire.
        """
        try:
            captured = capture.to_captured()
            applied = self.rewrite(captured)
        except (MissingStatusError, UnsupportedBodyModeError) as e:
            self.error(f"cannot rewrite response: {e}")
            captured = fallback_response()
            applied = False

        if applied:
            logger.debug(
                "Override applied by %s: %d -> %d",
                self.name,
                captured.original_status,
                captured.working_status,
            )

        try:
            await self.emit(captured, capture.writer)
        except Exception as e:
            self.error(f"cannot write response body: {e}")
            return

        if self.config.debug:
            self.info(f"writing body: [{len(captured.body)}] {captured.body.decode('utf-8', errors='replace')}")


def apply_body_mode(rule: OverrideRule, body: bytearray) -> bytearray:
    """Combine the current body with the rule's body content.

    Args:
        rule: Matching override rule
        body: Body accumulated so far

    Returns:
        New body

    Raises:
        UnsupportedBodyModeError: If rule.body_mode is not a known mode
    """
    mode = rule.body_mode or BodyMode.REPLACE.value
    try:
        body_mode = BodyMode(mode)
    except ValueError:
        raise UnsupportedBodyModeError(mode) from None

    content = rule.body_content.encode("utf-8")

    if body_mode == BodyMode.KEEP:
        return body
    elif body_mode == BodyMode.APPEND:
        return body + content
    elif body_mode == BodyMode.PREPEND:
        return bytearray(content) + body
    else:
        return bytearray(content)


def fallback_response() -> CapturedResponse:
    """Generic failure response used when a rewrite cannot complete."""
    return CapturedResponse(
        original_status=FALLBACK_STATUS,
        headers=headers_from_items(
            [
                ("content-type", "text/plain; charset=utf-8"),
                ("content-length", str(len(FALLBACK_BODY))),
            ]
        ),
        body=bytearray(FALLBACK_BODY),
    )
