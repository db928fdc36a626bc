"""Content negotiation over ``Accept``-style request headers.

``get_offer`` picks the best of the server's offers for one header,
ordering client ranges by quality, then specificity, then position.
The matcher decides whether a client range accepts an offer; there is
one per header family (media types, plain tokens, language tags).
"""

import mimetypes
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AcceptedRange:
    """One comma-separated element of an ``Accept*`` header."""

    spec: str
    quality: float
    specificity: int
    order: int
    params: tuple[tuple[str, str], ...] = ()


type Matcher = Callable[[AcceptedRange, str], bool]


def _specificity(spec: str) -> int:
    if spec in ("*", "*/*"):
        return 1
    if spec.endswith("/*"):
        return 2
    if "/" in spec:
        return 3
    return 4


def parse_accept(header: str) -> list[AcceptedRange]:
    """Parse an ``Accept*`` header, dropping ``q=0`` ranges.

    The result is sorted best-first.
    """
    ranges: list[AcceptedRange] = []
    for order, item in enumerate(header.split(",")):
        spec, *raw_params = (piece.strip() for piece in item.split(";"))
        if not spec:
            continue
        quality = 1.0
        params: list[tuple[str, str]] = []
        for raw in raw_params:
            key, _, value = raw.partition("=")
            key = key.strip().lower()
            value = value.strip().strip('"')
            if key == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 1.0
            elif key:
                params.append((key, value))
        if quality <= 0.0:
            continue
        ranges.append(AcceptedRange(spec, quality, _specificity(spec), order, tuple(params)))
    ranges.sort(key=lambda r: (-r.quality, -r.specificity, r.order))
    return ranges


def get_offer(header: str, matcher: Matcher, *offers: str) -> str:
    """Return the first offer accepted by the best client range, or ``""``.

    With no header every offer is acceptable and the first one wins.
    """
    if not offers:
        return ""
    if not header:
        return offers[0]
    for accepted in parse_accept(header):
        for offer in offers:
            if offer and matcher(accepted, offer):
                return offer
    return ""


def _offer_mime(offer: str) -> str:
    if "/" in offer:
        return offer.split(";", 1)[0].strip().lower()
    guessed, _ = mimetypes.guess_type(f"x.{offer.lstrip('.')}")
    return guessed or ""


def accepts_media_type(accepted: AcceptedRange, offer: str) -> bool:
    """``Accept`` matcher. Offers may be MIME types or extensions (``"html"``)."""
    spec = accepted.spec.lower()
    if spec == "*/*":
        return True
    mime = _offer_mime(offer)
    if not mime:
        return False
    if spec == mime:
        return _params_match(accepted.params, offer)
    if spec.endswith("/*"):
        return mime.split("/", 1)[0] == spec[:-2]
    return False


def _params_match(spec_params: tuple[tuple[str, str], ...], offer: str) -> bool:
    if not spec_params:
        return True
    offered = dict(
        (key.strip().lower(), value.strip().strip('"'))
        for key, _, value in (p.partition("=") for p in offer.split(";")[1:])
    )
    return all(offered.get(key) == value for key, value in spec_params)


def accepts_token(accepted: AcceptedRange, offer: str) -> bool:
    """``Accept-Charset`` / ``Accept-Encoding`` matcher."""
    spec = accepted.spec
    if spec.endswith("*"):
        return True
    return spec.lower() == offer.lower()


def accepts_language(accepted: AcceptedRange, offer: str) -> bool:
    """``Accept-Language`` matcher (RFC 4647 basic filtering)."""
    spec = accepted.spec
    if spec == "*":
        return True
    if "*" in spec:
        return False
    if spec.lower() == offer.lower():
        return True
    return (
        len(offer) > len(spec)
        and offer[: len(spec)].lower() == spec.lower()
        and offer[len(spec)] == "-"
    )
