"""
MODULE OVERVIEW:
Builds request targets for the database REST API.

WHAT IS HAPPENING HERE:
Every location in the database is addressed as `<host>/<path>.json[?query]`.
The host always ends in exactly one `/`, the combined path always ends in exactly
one `.json`, and a non-empty query always starts with exactly one `?`.
All functions here are pure: no I/O, no state.
"""
from shared.models import ResourceLocator

JSON_SUFFIX = ".json"


def force_end_char(string: str, end_ch: str) -> str:
    if not string.endswith(end_ch):
        return string + end_ch
    return string


def force_start_char(string: str, start_ch: str) -> str:
    if string and not string.startswith(start_ch):
        return start_ch + string
    return string


def normalize_host(host: str, path: str = "") -> ResourceLocator:
    """
    Combine a database URL and a path inside it into a ResourceLocator.

    `.json` is appended unless the combined string already ends with it. A string
    no longer than the marker itself always gets the marker appended.
    """
    host = force_end_char((host or "").strip(), "/")
    suffix = (path or "").strip()
    combined = host + suffix
    if len(combined) <= len(JSON_SUFFIX) or not combined.endswith(JSON_SUFFIX):
        suffix += JSON_SUFFIX
    return ResourceLocator(host=host, suffix=suffix)


def with_query(locator: ResourceLocator, query_string: str) -> ResourceLocator:
    return locator.model_copy(update={"query": force_start_char(query_string, "?")})


def render(locator: ResourceLocator, query_string: str = "") -> str:
    """Render the full URL; `query_string` overrides the locator's own query when given."""
    query = force_start_char(query_string, "?") if query_string else locator.query
    return locator.base + query
