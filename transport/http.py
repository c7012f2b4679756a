"""
Awaitable HTTP GET helper shared by the platform clients.

Blocking requests calls run in a worker thread so a slow platform only suspends the
calling coroutine. Responses are classified into the errors.py taxonomy here, once,
so clients never look at raw status codes except for the few that carry meaning
(GitHub's 202 "statistics still computing").
"""
import asyncio
import email.utils
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, urlparse

import requests

from errors import AuthenticationError, NotFoundError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class HttpResult:
    status: int
    body: Any
    headers: Mapping[str, str]


def _parse_retry_after(raw_ra: Optional[str]) -> Optional[float]:
    if not raw_ra:
        return None
    try:
        return float(raw_ra)
    except (TypeError, ValueError):
        pass
    try:
        dt = email.utils.parsedate_to_datetime(raw_ra)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def _safe_int_from_headers(headers: Mapping[str, Any], key: str) -> Optional[int]:
    try:
        val = headers.get(key)
        return int(val) if val is not None else None
    except (TypeError, ValueError):
        return None


def _retry_after_seconds(headers: Mapping[str, Any]) -> Optional[float]:
    ra = _parse_retry_after(headers.get('Retry-After'))
    if ra is not None:
        return ra
    reset = _safe_int_from_headers(headers, 'X-RateLimit-Reset')
    if reset:
        return max(0.0, float(reset) - time.time())
    return None


def _is_rate_limited(status: int, headers: Mapping[str, Any], text: str) -> bool:
    if status == 429:
        return True
    if status != 403:
        return False
    if _safe_int_from_headers(headers, 'X-RateLimit-Remaining') == 0:
        return True
    if headers.get('Retry-After') is not None:
        return True
    return 'rate limit' in (text or '').lower()


def _parse_body(resp) -> Any:
    try:
        return resp.json()
    except ValueError:
        return None


def classify_response(resp, url: str, platform: Optional[str] = None) -> HttpResult:
    """Turn a requests response into an HttpResult or raise the matching GitServiceError."""
    status = int(getattr(resp, 'status_code', 0) or 0)
    headers = getattr(resp, 'headers', None) or {}
    text = getattr(resp, 'text', '') or ''
    if not isinstance(text, str):
        text = ''

    if 200 <= status < 300:
        body = _parse_body(resp)
        if body is None and status == 200 and text.strip():
            raise TransportError(f"Malformed JSON from {url}", platform=platform, status=status)
        return HttpResult(status=status, body=body, headers=headers)

    if _is_rate_limited(status, headers, text):
        raise RateLimitError(platform=platform, status=status, retry_after=_retry_after_seconds(headers))
    if status in (401, 403):
        raise AuthenticationError(f"Authentication failed for {url} (HTTP {status}). Check your token.", platform=platform, status=status)
    if status == 404:
        raise NotFoundError(f"Not found or access denied: {url}", platform=platform, status=status)
    raise TransportError(f"HTTP {status} from {url}: {text[:200]}", platform=platform, status=status)


def _send(url: str, headers: Dict[str, str], params: Optional[Dict[str, Any]], timeout: float, platform: Optional[str]) -> HttpResult:
    try:
        resp = requests.get(url, headers=headers, params=params or {}, timeout=timeout)
    except requests.exceptions.Timeout as ex:
        raise TransportError(f"Request to {url} timed out after {timeout}s", platform=platform) from ex
    except requests.exceptions.RequestException as ex:
        raise TransportError(f"Request to {url} failed: {ex}", platform=platform) from ex
    return classify_response(resp, url, platform)


async def get(url: str, headers: Dict[str, str], params: Optional[Dict[str, Any]] = None, timeout: float = DEFAULT_TIMEOUT, platform: Optional[str] = None) -> HttpResult:
    """GET a URL without blocking the event loop."""
    logger.debug("GET %s params=%s", url, params)
    return await asyncio.to_thread(_send, url, headers, params, timeout, platform)


async def get_json(url: str, headers: Dict[str, str], params: Optional[Dict[str, Any]] = None, timeout: float = DEFAULT_TIMEOUT, platform: Optional[str] = None) -> Any:
    result = await get(url, headers, params=params, timeout=timeout, platform=platform)
    return result.body


def _last_page_from_link(link_header: Optional[str]) -> Optional[int]:
    """Page number of the rel="last" entry of a Link header, if any."""
    if not link_header:
        return None
    for link in requests.utils.parse_header_links(link_header):
        if link.get('rel') != 'last':
            continue
        pages = parse_qs(urlparse(link.get('url', '')).query).get('page')
        try:
            return int(pages[0]) if pages else None
        except ValueError:
            return None
    return None


async def count_items(
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    timeout: float = DEFAULT_TIMEOUT,
    platform: Optional[str] = None,
) -> int:
    """
    Count a page/per_page listing with a single request.

    Asks for one item per page; the rel="last" link then carries the item count.
    Without a Link header the listing fits on that one page.
    """
    page_params = dict(params or {})
    page_params.update({'per_page': 1, 'page': 1})
    result = await get(url, headers, params=page_params, timeout=timeout, platform=platform)
    if not isinstance(result.body, list):
        raise TransportError(f"Expected a JSON array from {url}", platform=platform)
    last = _last_page_from_link(result.headers.get('Link'))
    return last if last is not None else len(result.body)


async def paginate_pages(
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    page_size: int = 100,
    max_pages: int = 50,
    timeout: float = DEFAULT_TIMEOUT,
    platform: Optional[str] = None,
) -> List[Any]:
    """Drain a page/per_page style listing (GitHub, GitLab). Stops on a short page or at max_pages."""
    items: List[Any] = []
    for page in range(1, max_pages + 1):
        page_params = dict(params or {})
        page_params.update({'page': page, 'per_page': page_size})
        data = await get_json(url, headers, params=page_params, timeout=timeout, platform=platform)
        if not isinstance(data, list):
            raise TransportError(f"Expected a JSON array from {url}", platform=platform)
        items.extend(data)
        if len(data) < page_size:
            break
    else:
        logger.warning("Stopped paginating %s after %d pages", url, max_pages)
    return items


async def paginate_envelope(
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    max_pages: int = 50,
    timeout: float = DEFAULT_TIMEOUT,
    platform: Optional[str] = None,
) -> List[Any]:
    """Drain a {'values': [...], 'next': url} envelope listing (Bitbucket)."""
    items: List[Any] = []
    next_url: Optional[str] = url
    next_params = params
    pages = 0
    while next_url and pages < max_pages:
        data = await get_json(next_url, headers, params=next_params, timeout=timeout, platform=platform)
        if not isinstance(data, dict):
            raise TransportError(f"Expected a paginated envelope from {next_url}", platform=platform)
        items.extend(data.get('values') or [])
        next_url = data.get('next')
        # the next link already carries the query string
        next_params = None
        pages += 1
    if next_url:
        logger.warning("Stopped paginating %s after %d pages", url, max_pages)
    return items


__all__ = ["HttpResult", "classify_response", "count_items", "get", "get_json", "paginate_pages", "paginate_envelope"]
