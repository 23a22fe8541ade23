"""Mitmproxy integration for changeresponse."""

from changeresponse.mitm.addon import ChangeResponseAddon, FlowResponseWriter

__all__ = ["ChangeResponseAddon", "FlowResponseWriter"]
