"""``Range`` request header parsing (RFC 9110 section 14)."""

from dataclasses import dataclass

from fennec.errors import BadRequest, RangeNotSatisfiable


@dataclass(frozen=True, slots=True)
class ByteRange:
    """Inclusive byte offsets ``start..end``."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True, slots=True)
class Range:
    unit: str
    ranges: tuple[ByteRange, ...]


def parse_range(header: str, size: int) -> Range:
    """Parse ``bytes=0-99,200-`` against a resource of *size* bytes.

    Raises:
        BadRequest: If the header is malformed.
        RangeNotSatisfiable: If no range overlaps the resource.
    """
    unit, sep, spec = header.partition("=")
    if not sep or not unit.strip() or not spec.strip():
        raise BadRequest("Malformed Range header")
    ranges: list[ByteRange] = []
    for item in spec.split(","):
        first, dash, last = item.strip().partition("-")
        if not dash:
            raise BadRequest("Malformed Range header")
        try:
            if not first:
                # suffix form: the last N bytes
                suffix = int(last)
                if suffix < 0:
                    raise ValueError(last)
                start, end = max(size - suffix, 0), None
            else:
                start = int(first)
                end = int(last) if last else None
        except ValueError:
            raise BadRequest("Malformed Range header") from None
        if start < 0 or (end is not None and end < start):
            raise BadRequest("Malformed Range header")
        if start >= size:
            continue
        last_byte = size - 1 if end is None else min(end, size - 1)
        ranges.append(ByteRange(start, last_byte))
    if not ranges:
        raise RangeNotSatisfiable(size=size)
    return Range(unit.strip(), tuple(ranges))
