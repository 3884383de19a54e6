"""
WordPress REST Fetcher for the Mirror Sync.

This module reads whole collections (posts, pages, media) and lookup
dictionaries (categories, tags, users) from the WordPress REST API, page by
page, and downloads media binaries. Every request goes through the bounded
fixed-delay retry policy.
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

import aiohttp

from ..config import PAGE_SIZE
from .error_tracker import SourceFetchError, TransientUpstreamError
from .logging_manager import get_logger
from .resilience import RetryPolicy, with_retry

logger = get_logger(__name__)

TOTAL_PAGES_HEADER = 'x-wp-totalpages'


def flatten_rendered_fields(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Replace every `{"rendered": X}` field of a record with `X`, in place.

    Applies to any field using the wrapper, including `X == ""`.

    Args:
        record: Raw WordPress row

    Returns:
        The same record, for chaining
    """
    for key, value in record.items():
        if isinstance(value, dict) and 'rendered' in value and value['rendered'] is not None:
            record[key] = value['rendered']
    return record


def total_pages_from_headers(headers: Mapping[str, str]) -> int:
    """Read the page count WordPress reports; a missing header means one page."""
    value = headers.get(TOTAL_PAGES_HEADER)
    try:
        return int(value) if value else 1
    except ValueError:
        logger.warning(f"Ignoring malformed {TOTAL_PAGES_HEADER} header: {value!r}")
        return 1


class WordPressFetcher:
    """Fetches collections, dictionaries and binaries from one WordPress site."""

    def __init__(self, session: aiohttp.ClientSession, api_url: str, retry_policy: Optional[RetryPolicy] = None, page_size: int = PAGE_SIZE):
        """
        Initialize the fetcher.

        Args:
            session: Shared HTTP session for the run
            api_url: WordPress REST root, ending in `/wp-json/wp/v2/`
            retry_policy: Retry policy for every request
            page_size: Rows per page request
        """
        self.session = session
        self.api_url = api_url
        self.retry_policy = retry_policy or RetryPolicy()
        self.page_size = page_size

    async def _request(self, url: str, binary: bool = False) -> Tuple[Any, Dict[str, str]]:
        """
        Perform a single GET attempt.

        Returns:
            Tuple of (decoded JSON or raw bytes, lower-cased response headers)
        """
        async with self.session.get(url) as response:
            if response.status >= 500:
                raise TransientUpstreamError(f"HTTP {response.status} from {url}", source_id=url, status=response.status)
            if response.status >= 400:
                raise SourceFetchError(
                    f"HTTP {response.status} from {url}",
                    source_id=url,
                    status=response.status,
                    recovery_suggestion="Check the WordPress URL and that the REST API is publicly readable."
                )
            headers = {k.lower(): v for k, v in response.headers.items()}
            if binary:
                payload = await response.read()
            else:
                payload = await response.json(content_type=None)
            return payload, headers

    async def _get(self, url: str, binary: bool = False) -> Tuple[Any, Dict[str, str]]:
        return await with_retry(lambda: self._request(url, binary=binary), policy=self.retry_policy, description=url)

    async def _get_all_pages(self, base_query: str) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        total_pages = 1  # updated from the first response
        current_page = 1
        while current_page <= total_pages:
            payload, headers = await self._get(f"{base_query}&page={current_page}")
            if not isinstance(payload, list):
                raise SourceFetchError(f"Expected a list from {base_query}, got {type(payload).__name__}", source_id=base_query)
            if current_page == 1:
                total_pages = total_pages_from_headers(headers)
            rows.extend(payload)
            current_page += 1
        return rows

    async def fetch_paged(self, collection: str) -> List[Dict[str, Any]]:
        """
        Fetch every row of a collection, ordered by slug.

        Args:
            collection: `posts`, `pages`, `media`, ...

        Returns:
            All rows across pages in request order, with rendered fields flattened
        """
        query = urlencode({'per_page': self.page_size, 'orderby': 'slug', 'order': 'asc'})
        base_query = f"{self.api_url}{collection}?{query}"
        logger.info(f"Querying WordPress API - {base_query}")

        rows = await self._get_all_pages(base_query)
        for row in rows:
            flatten_rendered_fields(row)

        logger.info(f"Fetched {len(rows)} {collection} rows")
        return rows

    async def fetch_dictionary(self, list_name: str) -> Dict[int, str]:
        """
        Fetch an id -> name lookup (categories, tags, users).
        """
        query = urlencode({'context': 'embed', 'hide_empty': 'true', 'per_page': self.page_size})
        rows = await self._get_all_pages(f"{self.api_url}{list_name}?{query}")
        return {row['id']: row['name'] for row in rows}

    async def fetch_binary(self, url: str) -> bytes:
        """Download a media file."""
        logger.info(f"Downloading...{url}")
        payload, _ = await self._get(url, binary=True)
        return payload
