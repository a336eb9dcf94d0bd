"""Parsing of single HTTP ``Range: bytes=...`` headers for the stream endpoint."""
import re
from dataclasses import dataclass
from audiolink.core.errors import RangeNotSatisfiableError

_RANGE_RE = re.compile(r"^\s*bytes\s*=\s*(\d*)\s*-\s*(\d*)\s*$", re.IGNORECASE)

@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int  # inclusive

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def content_range(self, total: int) -> str:
        return f"bytes {self.start}-{self.end}/{total}"

def parse_range_header(header: str | None, total: int) -> ByteRange | None:
    """Resolve a Range header against a blob of ``total`` bytes.

    Returns None when the header is absent, malformed or asks for several
    ranges; the caller then serves the whole body. Raises
    RangeNotSatisfiableError when the range is well formed but cannot be
    served.
    """
    if not header or "," in header:
        return None
    m = _RANGE_RE.match(header)
    if not m:
        return None
    first, last = m.group(1), m.group(2)
    if not first and not last:
        return None

    if not first:
        # suffix range: the final N bytes
        suffix = int(last)
        if suffix == 0 or total == 0:
            raise RangeNotSatisfiableError(total)
        return ByteRange(max(total - suffix, 0), total - 1)

    start = int(first)
    end = int(last) if last else total - 1
    if last and end < start:
        return None
    if start >= total:
        raise RangeNotSatisfiableError(total)
    return ByteRange(start, min(end, total - 1))
