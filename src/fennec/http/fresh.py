"""Conditional GET freshness (``If-None-Match`` / ``If-Modified-Since``)."""

from email.utils import parsedate_to_datetime


def _etag_matches(if_none_match: str, etag: str) -> bool:
    if if_none_match.strip() == "*":
        return True
    wanted = etag.removeprefix("W/")
    return any(
        candidate.strip().removeprefix("W/") == wanted
        for candidate in if_none_match.split(",")
    )


def is_fresh(
    *,
    if_none_match: str,
    if_modified_since: str,
    cache_control: str,
    etag: str,
    last_modified: str,
) -> bool:
    """Whether the client's cached copy is still valid.

    ``Cache-Control: no-cache`` on the request always forces a refresh.
    When ``If-None-Match`` is present it decides alone.
    """
    if not if_none_match and not if_modified_since:
        return False
    if "no-cache" in cache_control.lower():
        return False
    if if_none_match:
        return bool(etag) and _etag_matches(if_none_match, etag)
    if not last_modified:
        return False
    try:
        return parsedate_to_datetime(last_modified) <= parsedate_to_datetime(if_modified_since)
    except (TypeError, ValueError):
        return False
