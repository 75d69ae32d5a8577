from urllib.parse import urlparse

HTTP_SCHEMES = ("http", "https")


class InvalidURLError(ValueError):
    """Raised when a URL cannot be split into scheme, host and port."""


def is_http_url(url: str) -> bool:
    """True for syntactically parseable http(s) URLs."""
    try:
        return urlparse(url).scheme.lower() in HTTP_SCHEMES
    except ValueError:
        return False


def base_url(url: str) -> str:
    """
    Root domain of ``url``: ``scheme://host[:port]``.

    Host and scheme are lowercased; the port is only kept when it is written
    out explicitly in the URL.
    """
    try:
        parsed = urlparse(url)
        host = parsed.hostname
        port = parsed.port
    except ValueError as exc:
        raise InvalidURLError(f"Invalid URL {url!r}: {exc}") from exc

    scheme = parsed.scheme.lower()
    if not scheme or not host:
        raise InvalidURLError(f"Invalid URL {url!r}: missing scheme or host")

    if ":" in host:
        host = f"[{host}]"

    base = f"{scheme}://{host}"
    if port is not None:
        base = f"{base}:{port}"
    return base
