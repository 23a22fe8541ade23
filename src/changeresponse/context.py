"""Working state for a single rewrite pass.

Holds the captured upstream response while the override rules run.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from starlette.datastructures import MutableHeaders

RawHeaders = list[tuple[bytes, bytes]]


def headers_from_items(items: Iterable[tuple[str | bytes, str | bytes]]) -> MutableHeaders:
    """Build a header multimap from (name, value) pairs.

    Names are lowercased so lookups through MutableHeaders match.
    Duplicate names are kept in order.
    """
    raw: RawHeaders = []
    for name, value in items:
        if isinstance(name, str):
            name = name.encode("latin-1")
        if isinstance(value, str):
            value = value.encode("latin-1")
        raw.append((name.lower(), value))
    return MutableHeaders(raw=raw)


def headers_from_mapping(mapping: Mapping[str, list[str]]) -> MutableHeaders:
    """Build a header multimap from a name -> values mapping."""
    return headers_from_items((name, value) for name, values in mapping.items() for value in values)


def headers_to_dict(headers: MutableHeaders) -> dict[str, list[str]]:
    """Group headers by name, preserving value order."""
    grouped: dict[str, list[str]] = {}
    for name, value in headers.items():
        grouped.setdefault(name, []).append(value)
    return grouped


@dataclass
class CapturedResponse:
    """Response captured from the upstream handler.

    Attributes:
        original_status: Status declared by the upstream; the match key for
            every rule in the pass
        working_status: Status after the rules applied so far
        headers: Case-insensitive header multimap
        body: Buffered response body
    """

    original_status: int
    working_status: int = 0
    headers: MutableHeaders = field(default_factory=MutableHeaders)
    body: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        if not self.working_status:
            self.working_status = self.original_status

    @classmethod
    def from_parts(
        cls,
        status: int,
        headers: Iterable[tuple[str | bytes, str | bytes]] | None = None,
        body: bytes | str = b"",
    ) -> CapturedResponse:
        """Create a CapturedResponse from plain values.

        Args:
            status: Upstream status code
            headers: (name, value) pairs, duplicates allowed
            body: Upstream body (str is encoded as UTF-8)

        Returns:
            CapturedResponse with working_status equal to status
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(
            original_status=status,
            headers=headers_from_items(headers or []),
            body=bytearray(body),
        )

    @property
    def content(self) -> bytes:
        """Final body bytes."""
        return bytes(self.body)

    def get_header_values(self, name: str) -> list[str]:
        """Get every value of a header (case-insensitive)."""
        return self.headers.getlist(name)
