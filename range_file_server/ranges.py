"""
Range expression parsing.

Accepts ``<unit>=<start>-[<end>]``. The unit is not checked: anything before
the first ``=`` is ignored, so ``bytes=10-`` and ``items=10-`` are the same.
"""

from dataclasses import dataclass

from range_file_server.errors import MalformedRangeError


@dataclass(frozen=True)
class ByteRange:
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.end < self.start:
            raise MalformedRangeError(f"invalid byte range {self.start}-{self.end}")

    @property
    def length(self):
        return self.end - self.start + 1

    def content_range(self, total_size):
        return f"bytes {self.start}-{self.end}/{total_size}"


def _parse_offset(text, header_value):
    text = text.strip()
    # int() would also take "+5", " 5" or "5_000"
    if not text.isdigit() or not text.isascii():
        raise MalformedRangeError(f"invalid range {header_value!r}")
    return int(text)


def parse_bounds(header_value):
    """
    Split a range expression into ``(start, end)``.

    ``end`` is None when the expression is open ended (``bytes=100-``).
    Shared by the read path and the upload path.
    """
    if header_value is None or "=" not in header_value:
        raise MalformedRangeError(f"invalid range {header_value!r}")

    bounds_text = header_value.split("=", 1)[1]
    start_text, sep, end_text = bounds_text.partition("-")
    start = _parse_offset(start_text, header_value)

    if not sep or not end_text.strip():
        return start, None

    end = _parse_offset(end_text, header_value)
    if end < start:
        raise MalformedRangeError(f"range end before start in {header_value!r}")
    return start, end


def parse_range(header_value, total_size):
    """
    Resolve a range expression against a resource of ``total_size`` bytes.

    An open end means "to the last byte". An explicit end past the last byte
    is clamped to it. A start past the end of the resource is left for the
    caller to reject.
    """
    start, end = parse_bounds(header_value)
    last = total_size - 1
    if end is None or end > last:
        end = max(last, start)
    return ByteRange(start, end)
