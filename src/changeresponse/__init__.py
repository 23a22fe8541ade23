"""Status-code driven rewriting of upstream HTTP responses.

An upstream response is captured instead of streamed. Each override rule
whose status list contains the upstream status then runs in order, setting
the status, editing headers and combining its body text with the current
body. The final response is sent once.
"""

from changeresponse.capture import ResponseCapture
from changeresponse.config import BodyMode, ChangeResponseConfig, OverrideRule, create_config
from changeresponse.context import CapturedResponse
from changeresponse.engine import OverrideEngine
from changeresponse.errors import ChangeResponseError, ConfigError, UnsupportedBodyModeError
from changeresponse.middleware import ChangeResponseMiddleware

__all__ = [
    "BodyMode",
    "CapturedResponse",
    "ChangeResponseConfig",
    "ChangeResponseError",
    "ChangeResponseMiddleware",
    "ConfigError",
    "OverrideEngine",
    "OverrideRule",
    "ResponseCapture",
    "UnsupportedBodyModeError",
    "create_config",
]
