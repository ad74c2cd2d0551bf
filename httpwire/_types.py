"""Message data model: methods, headers, start lines, requests and responses."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import StrEnum
from typing import BinaryIO, Final, NamedTuple

from httpwire._common import ProtocolError

_INITIAL_CAPACITY: Final[int] = 2


# ---------------------------------------------------------------------------
# Method
# ---------------------------------------------------------------------------


class Method(StrEnum):
    """The closed set of request methods understood on the wire."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"

    @classmethod
    def from_token(cls, token: str) -> Method:
        """Map a wire token to its method (case-sensitive).

        Raises:
            ProtocolError: If *token* is not one of the nine method names.

        """
        try:
            return cls(token)
        except ValueError:
            raise ProtocolError(f"Unknown request method: {token!r}") from None


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


class Header(NamedTuple):
    """A single ``key: value`` header line."""

    key: str
    value: str


class HeaderBlock:
    """Ordered header storage with power-of-two capacity growth.

    Storage starts with room for two entries.  When the occupied count is a
    power of two (>= 2) at the moment another entry is appended, capacity
    doubles, so it moves 2 -> 4 -> 8 -> 16 as entries arrive.  Duplicate keys
    are kept as separate entries in arrival order.
    """

    __slots__ = ("_count", "_slots")

    def __init__(self, headers: Iterable[tuple[str, str]] = ()) -> None:
        """Initialize, optionally appending *headers* in order."""
        self._slots: list[Header | None] = [None] * _INITIAL_CAPACITY
        self._count = 0
        for key, value in headers:
            self.append(key, value)

    @property
    def capacity(self) -> int:
        """Number of allocated entry slots."""
        return len(self._slots)

    def append(self, key: str, value: str) -> None:
        """Append a header, growing storage first if the count is a power of two."""
        count = self._count
        if not self._slots:
            self._slots = [None] * _INITIAL_CAPACITY
        elif count >= _INITIAL_CAPACITY and count & (count - 1) == 0:
            self._slots.extend([None] * count)
        self._slots[count] = Header(key, value)
        self._count = count + 1

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value of the first header named *key* (case-insensitive)."""
        wanted = key.lower()
        for header in self:
            if header.key.lower() == wanted:
                return header.value
        return default

    def get_all(self, key: str) -> list[str]:
        """Return the values of every header named *key* (case-insensitive), in order."""
        wanted = key.lower()
        return [header.value for header in self if header.key.lower() == wanted]

    def release(self) -> None:
        """Drop every entry and the storage itself."""
        self._slots = []
        self._count = 0

    def _live(self) -> list[Header]:
        return [h for h in self._slots[: self._count] if h is not None]

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[Header]:
        return iter(self._live())

    def __getitem__(self, index: int) -> Header:
        return self._live()[index]

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HeaderBlock):
            return self._live() == other._live()
        if isinstance(other, list | tuple):
            return self._live() == [tuple(item) for item in other]
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"HeaderBlock({[tuple(h) for h in self]!r})"


def _as_header_block(headers: HeaderBlock | Iterable[tuple[str, str]]) -> HeaderBlock:
    return headers if isinstance(headers, HeaderBlock) else HeaderBlock(headers)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


@dataclass
class StatusLine:
    """Numeric status code plus its reason phrase (possibly empty)."""

    code: int
    description: str = ""


@dataclass
class Request:
    """An HTTP request.

    Attributes:
        method: Request method.
        path: Request target; always begins with ``/`` when parsed.
        headers: Ordered header block.
        body: Seekable binary source streamed after the head when sending.
            Never populated on a parsed request and never closed here.

    """

    method: Method
    path: str
    headers: HeaderBlock = field(default_factory=HeaderBlock)
    body: BinaryIO | None = None

    def __post_init__(self) -> None:
        """Accept a method name string and any iterable of ``(key, value)`` pairs as *headers*."""
        self.method = Method(self.method)
        self.headers = _as_header_block(self.headers)

    def release(self) -> None:
        """Release the header storage and path; the body is left alone."""
        self.headers.release()
        self.path = ""


@dataclass
class Response:
    """An HTTP response.

    Attributes:
        status: Status code and description.
        headers: Ordered header block.
        body: Seekable binary source streamed after the head when sending.
            Never populated on a parsed response and never closed here.

    """

    status: StatusLine
    headers: HeaderBlock = field(default_factory=HeaderBlock)
    body: BinaryIO | None = None

    def __post_init__(self) -> None:
        """Accept any iterable of ``(key, value)`` pairs as *headers*."""
        self.headers = _as_header_block(self.headers)

    def release(self) -> None:
        """Release the header storage and status description; the body is left alone."""
        self.headers.release()
        self.status.description = ""


def release_request(request: Request) -> None:
    """Release everything a parsed request owns."""
    request.release()


def release_response(response: Response) -> None:
    """Release everything a parsed response owns."""
    response.release()
