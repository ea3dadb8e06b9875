from urllib.parse import urljoin, urlparse


SECURE_WWW_PREFIX = "https://www."


def canonicalize(url: str) -> str:
    """Bring a URL to the form used for every comparison and stored value.

    ``http`` becomes ``https``, a trailing slash is appended and the host is
    forced to carry a ``www.`` prefix. Applying it twice changes nothing.
    """
    url = url.strip()
    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]

    if not url.endswith("/"):
        url = f"{url}/"

    if url.startswith(SECURE_WWW_PREFIX):
        return url
    if url.startswith("https://"):
        return SECURE_WWW_PREFIX + url[len("https://"):]
    if url.startswith("www."):
        return f"https://{url}"
    return SECURE_WWW_PREFIX + url


def is_in_scope(root_url: str, url: str) -> bool:
    """Same root or deeper, never a fragment link."""
    return url.startswith(root_url) and "#" not in url


def site_path(root_url: str, url: str) -> str:
    """Path of a canonical page URL relative to its canonical site root.

    The leading slash of the root is kept, so the root itself maps to ``/``.
    """
    if not url.startswith(root_url):
        raise ValueError(f"{url} is outside of {root_url}")
    return url[len(root_url) - 1:]


def absolute_url(base_url: str, href: str) -> str | None:
    """Resolve ``href`` against ``base_url``; only http(s) results are kept."""
    raw_link = href.strip()
    if not raw_link:
        return None

    url = urljoin(base_url, raw_link)
    if urlparse(url).scheme not in ("http", "https"):
        return None
    return url


def get_domain(url: str) -> str:
    """Host of a URL without port, lowercased."""
    try:
        netloc = urlparse(url).netloc.lower()
        return netloc.split(":", 1)[0]
    except Exception:
        return ""
