"""URL normalization and domain helpers shared across the pipeline."""

from urllib.parse import urljoin, urlparse, urlunparse

# Hosts treated as academic or reference sources for E-E-A-T heuristics
REFERENCE_HOSTS = frozenset(
    [
        "wikipedia.org",
        "wikidata.org",
        "doi.org",
        "arxiv.org",
        "pubmed.ncbi.nlm.nih.gov",
        "ncbi.nlm.nih.gov",
        "nih.gov",
        "scholar.google.com",
        "jstor.org",
        "nature.com",
        "sciencedirect.com",
        "who.int",
        "britannica.com",
    ]
)

REFERENCE_SUFFIXES = (".edu", ".gov", ".mil", ".int")


def normalize_url(url: str, base_url: str | None = None) -> str | None:
    """
    Normalize a URL into a graph key.

    Lower-cases scheme and host, drops the fragment and query, and removes
    the trailing slash from non-root paths.

    Args:
        url: The URL to normalize
        base_url: Optional base URL for resolving relative URLs

    Returns:
        Normalized URL string or None if the URL is not http(s)
    """
    if not url or not url.strip():
        return None

    url = url.strip()
    if base_url and not url.startswith(("http://", "https://", "//")):
        url = urljoin(base_url, url)
    elif url.startswith("//"):
        url = "https:" + url

    try:
        parsed = urlparse(url)
    except ValueError:
        return None

    if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
        return None

    path = parsed.path or "/"
    if path != "/" and path.endswith("/"):
        path = path.rstrip("/") or "/"

    return urlunparse((parsed.scheme.lower(), parsed.netloc.lower(), path, "", "", ""))


def rehost(url: str, base_url: str) -> str:
    """Move a normalized URL onto the scheme and host of ``base_url``."""
    parsed, base = urlparse(url), urlparse(base_url)
    return urlunparse((base.scheme.lower(), base.netloc.lower(), parsed.path or "/", "", "", ""))


def extract_host(url: str) -> str | None:
    """Extract the lower-cased host (no port) from a URL."""
    try:
        host = urlparse(url).netloc.lower()
    except ValueError:
        return None
    if "@" in host:
        host = host.rsplit("@", 1)[1]
    if ":" in host:
        host = host.split(":")[0]
    return host or None


def strip_www(host: str) -> str:
    """Remove a leading ``www.`` label."""
    host = host.strip().lower()
    return host[4:] if host.startswith("www.") else host


def registrable_domain(host_or_url: str) -> str:
    """
    Approximate eTLD+1 as the last two labels of the host.

    Accepts either a bare host or a full URL.
    """
    value = host_or_url.strip().lower()
    if "://" in value:
        value = extract_host(value) or ""
    value = value.rstrip(".")
    labels = [label for label in value.split(".") if label]
    if len(labels) <= 2:
        return ".".join(labels)
    return ".".join(labels[-2:])


def is_reference_host(host: str) -> bool:
    """Check whether a host is an academic or reference source."""
    host = strip_www(host)
    if host.endswith(REFERENCE_SUFFIXES) or ".ac." in host or ".edu." in host:
        return True
    return any(host == ref or host.endswith("." + ref) for ref in REFERENCE_HOSTS)
