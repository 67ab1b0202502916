"""URL scraping service for fetching page metadata (title, favicon, description)."""
import ipaddress
import logging
import socket
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Browser-like user agent: many sites reject unidentified clients
USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'
)
DEFAULT_TIMEOUT = 10.0

# Checked in order; the first tag with an href wins
FAVICON_SELECTORS = (
    'link[rel="icon"]',
    'link[rel="shortcut icon"]',
    'link[rel="apple-touch-icon"]',
    'link[rel="icon"][type="image/x-icon"]',
)


class SSRFBlockedError(Exception):
    """Raised when a URL targets a private/internal network address."""

    pass


def is_private_ip(ip_str: str) -> bool:
    """
    Check if an IP address is private, loopback, or otherwise internal.

    Args:
        ip_str: IP address string (IPv4 or IPv6).

    Returns:
        True if the IP is private/internal, False if public.
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_multicast
            or ip.is_reserved
            or ip.is_unspecified
        )
    except ValueError:
        # If we can't parse it, block it to be safe
        return True


def validate_url_not_private(url: str) -> None:
    """
    Validate that a URL does not target a private/internal network.

    Resolves the hostname to check the actual IP address, preventing
    DNS rebinding attacks where a hostname resolves to an internal IP.

    Raises:
        SSRFBlockedError: If the URL targets a private network.
        ValueError: If the URL is malformed or the host cannot be resolved.
    """
    hostname = urlparse(url).hostname

    if not hostname:
        raise ValueError(f"Invalid URL (no hostname): {url}")

    if hostname.lower() in ('localhost', 'localhost.localdomain'):
        raise SSRFBlockedError(f"Blocked request to localhost: {url}")

    try:
        # sockaddr is (ip, port) for IPv4 or (ip, port, flow, scope) for IPv6
        addrinfo = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise ValueError(f"Could not resolve hostname: {hostname}") from e

    for _, _, _, _, sockaddr in addrinfo:
        ip_str = sockaddr[0]
        if is_private_ip(ip_str):
            raise SSRFBlockedError(
                f"Blocked request to private/internal address: {url} resolves to {ip_str}",
            )


@dataclass
class UrlMetadata:
    """Best-effort metadata for a page."""

    title: str
    favicon: str | None
    description: str | None = None

    @classmethod
    def fallback(cls, url: str) -> 'UrlMetadata':
        """Result used when the page cannot be fetched or parsed."""
        return cls(title=url, favicon=None, description=None)


@dataclass
class ExtractedMetadata:
    """Fields found in the HTML itself (favicon not yet probed)."""

    title: str | None
    favicon: str | None
    description: str | None


def extract_html_metadata(html: str, page_url: str) -> ExtractedMetadata:
    """
    Extract title, favicon link, and description from HTML.

    Pure function with no I/O. Uses BeautifulSoup for parsing.

    Title extraction priority:
    1. <title> tag
    2. <meta property="og:title">

    Favicon: first of FAVICON_SELECTORS with an href, resolved against page_url.

    Description extraction priority:
    1. <meta name="description">
    2. <meta property="og:description">

    Args:
        html:
            Raw HTML string to parse.
        page_url:
            URL the HTML was served from (after redirects), for resolving relative hrefs.
    """
    soup = BeautifulSoup(html, 'lxml')

    title = None
    title_tag = soup.find('title')
    if title_tag:
        title = title_tag.get_text().strip() or None
    if not title:
        og_title = soup.find('meta', property='og:title')
        if og_title and og_title.get('content'):
            title = og_title['content'].strip() or None

    favicon = None
    for selector in FAVICON_SELECTORS:
        link = soup.select_one(selector)
        if link and link.get('href'):
            favicon = urljoin(page_url, link['href'].strip())
            break

    description = None
    meta_desc = soup.find('meta', attrs={'name': 'description'})
    if meta_desc and meta_desc.get('content'):
        description = meta_desc['content'].strip() or None
    if not description:
        og_desc = soup.find('meta', property='og:description')
        if og_desc and og_desc.get('content'):
            description = og_desc['content'].strip() or None

    return ExtractedMetadata(title=title, favicon=favicon, description=description)


def default_favicon_url(url: str) -> str:
    """Conventional `/favicon.ico` location at the site root."""
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}/favicon.ico"


async def probe_favicon(client: httpx.AsyncClient, url: str) -> str | None:
    """
    HEAD the site-root favicon and return its URL if it exists.

    Probe failures are local to this step: they never discard metadata
    already extracted from the page.
    """
    favicon_url = default_favicon_url(url)
    try:
        response = await client.head(favicon_url)
    except httpx.HTTPError as e:
        logger.debug("Favicon probe failed for %s: %s", favicon_url, e)
        return None
    return favicon_url if response.is_success else None


async def fetch_url_metadata(url: str, timeout: float = DEFAULT_TIMEOUT) -> UrlMetadata:  # noqa: ASYNC109
    """
    Fetch a page and extract its title, favicon, and description.

    Best-effort: never raises. Any SSRF rejection, network error, timeout,
    non-2xx response or parse failure yields `UrlMetadata.fallback(url)`
    (title = url, favicon = None).

    Args:
        url:
            The URL to fetch.
        timeout:
            Request timeout in seconds.
    """
    try:
        validate_url_not_private(url)
    except (SSRFBlockedError, ValueError) as e:
        logger.info("Metadata fetch skipped for %s: %s", url, e)
        return UrlMetadata.fallback(url)

    try:
        async with httpx.AsyncClient(
            follow_redirects=True,
            timeout=timeout,
            headers={'User-Agent': USER_AGENT},
            http2=True,
        ) as client:
            response = await client.get(url)

            # SSRF protection: validate final URL after redirects
            final_url = str(response.url)
            if final_url != url:
                validate_url_not_private(final_url)

            if not response.is_success:
                logger.info("Metadata fetch for %s returned HTTP %s", url, response.status_code)
                return UrlMetadata.fallback(url)

            extracted = extract_html_metadata(response.text, final_url)
            favicon = extracted.favicon
            if favicon is None:
                favicon = await probe_favicon(client, final_url)
    except (SSRFBlockedError, ValueError) as e:
        logger.info("Metadata fetch blocked after redirect for %s: %s", url, e)
        return UrlMetadata.fallback(url)
    except httpx.TimeoutException:
        logger.info("Metadata fetch timed out for %s", url)
        return UrlMetadata.fallback(url)
    except httpx.HTTPError as e:
        logger.info("Metadata fetch failed for %s: %s", url, e)
        return UrlMetadata.fallback(url)
    except Exception:
        # Parser failures on hostile markup must not fail bookmark creation
        logger.exception("Unexpected error extracting metadata for %s", url)
        return UrlMetadata.fallback(url)

    return UrlMetadata(
        title=extracted.title or url,
        favicon=favicon,
        description=extracted.description,
    )
