from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

TRACKING_KEYS = {"ref", "fbclid", "gclid"}
ALLOWED_SCHEMES = {"http", "https"}
MAX_LINK_LENGTH = 2048
DEFAULT_PORTS = {("http", 80), ("https", 443)}


def _is_tracking_param(key: str) -> bool:
    return key.startswith("utm_") or key in TRACKING_KEYS


def normalize_link(raw_link: str) -> str:
    """Conservative link normalization used as the catalog uniqueness key.

    Raises ``ValueError`` for anything that is not an absolute http(s) link.
    """
    candidate = raw_link.strip()
    if not candidate:
        raise ValueError("link must be a non-empty string")
    if len(candidate) > MAX_LINK_LENGTH:
        raise ValueError(f"link must be at most {MAX_LINK_LENGTH} characters")

    # urlparse and .port raise ValueError for bracketed hosts and ports that do not parse.
    parsed = urlparse(candidate)
    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"unsupported link scheme: {parsed.scheme or '<none>'}")

    netloc = parsed.netloc.lower()
    if not parsed.hostname:
        raise ValueError("link must include a host")
    port = parsed.port
    if (scheme, port) in DEFAULT_PORTS:
        netloc = netloc.rsplit(":", maxsplit=1)[0]

    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]

    filtered_query_pairs = [
        (key, value)
        for key, value in parse_qsl(parsed.query, keep_blank_values=True)
        if not _is_tracking_param(key)
    ]
    filtered_query_pairs.sort(key=lambda pair: pair[0])
    query = urlencode(filtered_query_pairs, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))
