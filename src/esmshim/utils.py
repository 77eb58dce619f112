"""URL and string helpers shared by the HTML and module transforms."""

from __future__ import annotations

import re
from urllib.parse import urljoin

_LEADING_WS = re.compile(r"^\s*")
_TRAILING_WS = re.compile(r"\s*$")


def append_query_parameter(url: str, param: str) -> str:
    """Append ``param`` to the query string of ``url``.

    Any existing query string is kept and the new parameter is joined with
    ``&``. A ``#fragment`` stays at the end of the URL.

    >>> append_query_parameter("a.js?x=1", "v=2")
    'a.js?x=1&v=2'
    """
    if not param:
        return url
    url, hash_mark, fragment = url.partition("#")
    if "?" not in url:
        url = f"{url}?{param}"
    elif url.endswith(("?", "&")):
        url = f"{url}{param}"
    else:
        url = f"{url}&{param}"
    return f"{url}{hash_mark}{fragment}"


def resolve_url(base: str, href: str) -> str | None:
    """Resolve ``href`` against ``base``; ``None`` if either is malformed."""
    try:
        return urljoin(base, href.strip())
    except ValueError:
        # urljoin rejects things like unbalanced IPv6 brackets in the netloc
        return None


def preserve_surrounding_whitespace(original: str, transformed: str) -> str:
    """Wrap ``transformed`` in the leading/trailing whitespace of ``original``."""
    leading = _LEADING_WS.match(original).group(0)  # type: ignore[union-attr]
    if len(leading) == len(original):
        return leading + transformed.strip()
    trailing = _TRAILING_WS.search(original).group(0)  # type: ignore[union-attr]
    return leading + transformed.strip() + trailing
