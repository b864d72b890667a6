from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from edge_proxy.vars import PLATFORM_IDENTITY_HEADERS

from .target import TargetURL

# Hop-by-hop headers that only make sense on the inbound leg
HOP_BY_HOP_HEADERS = {
    "host",
    "connection",
    "keep-alive",
}

HeaderItems = Iterable[Tuple[Union[str, bytes], Union[str, bytes]]]


class HeaderMap:
    """
    Header mapping with lower-cased keys where the last write wins.

    Repeated names collapse to the last value seen, which is what copying
    header entries one by one into a plain mapping does.
    """

    def __init__(self, items: Optional[HeaderItems] = None):
        self._values: Dict[str, str] = {}
        for name, value in items or ():
            self.set(name, value)

    def set(self, name, value) -> None:
        self._values[_to_str(name).lower()] = _to_str(value)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(name.lower(), default)

    def pop(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.pop(name.lower(), default)

    def items(self):
        return self._values.items()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def raw_items(self) -> List[Tuple[bytes, bytes]]:
        """Pairs encoded back to the latin-1 bytes they arrived as."""
        return [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in self._values.items()
        ]


    def __contains__(self, name) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __getitem__(self, name: str) -> str:
        return self._values[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"HeaderMap({self._values!r})"


def _to_str(value) -> str:
    # ASGI hands raw headers over as latin-1 bytes
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return value


def excluded_headers() -> frozenset:
    return frozenset(HOP_BY_HOP_HEADERS) | PLATFORM_IDENTITY_HEADERS


def build_outbound_headers(inbound: HeaderItems, target: TargetURL) -> HeaderMap:
    """
    Build the header set sent to the target.

    Drops hop-by-hop and platform-identity headers, copies everything else
    verbatim and finally points ``host`` at the target.
    """
    excluded = excluded_headers()
    headers = HeaderMap()
    for name, value in inbound:
        if _to_str(name).lower() in excluded:
            continue
        headers.set(name, value)

    headers.set("host", target.host)
    return headers
