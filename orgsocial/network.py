"""Document Retrieval

Fetches org-social documents over HTTP(S) and merges them into a Feed.

Fetching is the only asynchronous part of the package. Each source is fetched
in a worker thread under its own deadline; a slow or failing source is
reported in the failures map and never aborts its siblings. Parsing and Feed
construction happen only after every fetch has finished or timed out.

Error handling:
    - Connection errors are retried with exponential backoff (see
      ``orgsocial.utils.errors.retry_with_backoff``); read timeouts are retried
      only for single fetches, since a batch source has one shared deadline
    - HTTP error statuses are not retried
    - Every failure surfaces as FetchError with a ``reason`` of "timeout",
      "http_status" or "network"
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import requests
import structlog

from orgsocial.config import Settings, load_settings
from orgsocial.feed import DuplicatePostIdError, Feed
from orgsocial.models.social_models import Post, Profile
from orgsocial.parser import parse_document
from orgsocial.utils.errors import retry_with_backoff

logger = structlog.get_logger(__name__)

RETRYABLE_EXCEPTIONS = (requests.ConnectionError, requests.Timeout)


class FetchError(Exception):
    """A document could not be retrieved.

    Attributes:
        url: Source URL
        reason: "timeout", "http_status" or "network"
        status_code: HTTP status for "http_status" failures
    """

    def __init__(self, url: str, reason: str, message: str = "", status_code: Optional[int] = None):
        super().__init__(f"Failed to fetch {url} ({reason}): {message}" if message else f"Failed to fetch {url} ({reason})")
        self.url = url
        self.reason = reason
        self.status_code = status_code


@dataclass
class FetchReport:
    """Outcome of a batch fetch.

    Attributes:
        documents: url -> document text, for sources that succeeded
        failures: url -> FetchError, for sources that failed or timed out
    """
    documents: Dict[str, str] = field(default_factory=dict)
    failures: Dict[str, FetchError] = field(default_factory=dict)

    @property
    def succeeded(self) -> List[str]:
        return list(self.documents)

    @property
    def failed(self) -> List[str]:
        return list(self.failures)


def fetch_document(
    url: str,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
    settings: Optional[Settings] = None,
    retry_timeouts: bool = True,
) -> str:
    """Fetch one org-social document.

    Args:
        url: Document URL
        timeout: Connect/read timeout in seconds (default: settings.fetch_timeout)
        session: Optional requests.Session to reuse connections
        settings: Retry and header configuration (default: from environment)
        retry_timeouts: Also retry read timeouts. Batch fetches turn this off
            because the per-attempt timeout equals the source's whole deadline

    Returns:
        str: Document text, decoded as UTF-8

    Raises:
        FetchError: On timeout, HTTP error status or network failure, after
            transient errors have been retried
    """
    settings = settings or load_settings()
    if timeout is None:
        timeout = settings.fetch_timeout

    get = session.get if session is not None else requests.get
    headers = {"User-Agent": settings.user_agent}
    retryable = RETRYABLE_EXCEPTIONS if retry_timeouts else (requests.ConnectionError,)
    attempts = 0

    def _get() -> str:
        nonlocal attempts
        attempts += 1
        if attempts > 1:
            logger.info("document_fetch_retry", url=url, attempt=attempts)

        response = get(url, timeout=timeout, headers=headers)
        response.raise_for_status()
        # Documents are UTF-8; text/plain without a charset would decode as latin-1
        response.encoding = "utf-8"
        return response.text

    try:
        return retry_with_backoff(
            _get,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
            retryable_exceptions=retryable
        )
    except requests.Timeout as e:
        logger.warning("document_fetch_failed", url=url, reason="timeout", attempts=attempts, error=str(e))
        raise FetchError(url, "timeout", str(e)) from e
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.warning("document_fetch_failed", url=url, reason="http_status", status_code=status)
        raise FetchError(url, "http_status", str(e), status_code=status) from e
    except requests.RequestException as e:
        logger.warning("document_fetch_failed", url=url, reason="network", attempts=attempts, error=str(e))
        raise FetchError(url, "network", str(e)) from e


async def fetch_documents(
    urls: Iterable[str],
    timeout: Optional[float] = None,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> FetchReport:
    """Fetch many documents concurrently with partial-failure semantics.

    Each URL runs ``fetch_document`` in a worker thread bounded by its own
    ``asyncio.wait_for`` deadline. Duplicate URLs are fetched once.

    Args:
        urls: Document URLs
        timeout: Per-source deadline in seconds (default: settings.fetch_timeout)
        settings: Configuration (default: from environment)
        session: Optional shared requests.Session

    Returns:
        FetchReport: Successful documents and per-source failures. Never raises
            for an individual source.

    Example:
        >>> report = await fetch_documents(["https://a.example/social.org"], timeout=10)
        >>> report.failures
        {}
    """
    settings = settings or load_settings()
    if timeout is None:
        timeout = settings.fetch_timeout

    unique_urls = list(dict.fromkeys(urls))

    async def _fetch_one(url: str) -> Tuple[str, Optional[str], Optional[FetchError]]:
        try:
            text = await asyncio.wait_for(
                asyncio.to_thread(fetch_document, url, timeout, session, settings, retry_timeouts=False),
                timeout=timeout
            )
            return url, text, None
        except asyncio.TimeoutError:
            logger.warning("document_fetch_failed", url=url, reason="timeout", deadline=timeout)
            return url, None, FetchError(url, "timeout", f"no response within {timeout}s")
        except FetchError as e:
            return url, None, e

    results = await asyncio.gather(*(_fetch_one(url) for url in unique_urls))

    report = FetchReport()
    for url, text, error in results:
        if error is not None:
            report.failures[url] = error
        else:
            report.documents[url] = text

    logger.info(
        "feeds_fetched",
        requested=len(unique_urls),
        succeeded=len(report.documents),
        failed=len(report.failures)
    )
    return report


async def fetch_feeds(
    urls: Iterable[str],
    timeout: Optional[float] = None,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> Tuple[List[Tuple[Profile, List[Post]]], Dict[str, FetchError]]:
    """Fetch and parse many documents.

    Returns:
        tuple: ([(Profile, posts), ...] in URL order for the sources that
            succeeded, {url: FetchError} for the ones that did not)
    """
    settings = settings or load_settings()
    report = await fetch_documents(urls, timeout=timeout, settings=settings, session=session)

    batches = [
        parse_document(text, source=url, auto_parse=settings.auto_parse)
        for url, text in report.documents.items()
    ]
    return batches, report.failures


async def build_network_feed(
    profile: Profile,
    posts: List[Post],
    timeout: Optional[float] = None,
    settings: Optional[Settings] = None,
    session: Optional[requests.Session] = None,
) -> Tuple[Feed, Dict[str, Exception]]:
    """Build a Feed from the user's own document plus every followed source.

    Sources are ingested one batch at a time in follow order. A source whose
    batch claims a post id already owned by another profile is left out and
    reported in the failures map; every other source is still merged.

    Args:
        profile: The user's profile; its ``follows`` list the sources to fetch
        posts: The user's own posts
        timeout: Per-source deadline in seconds
        settings: Configuration (default: from environment)
        session: Optional shared requests.Session

    Returns:
        tuple: (Feed, {url: error}) where the Feed holds the user's posts and
            those of every source that was fetched and accepted. Errors are
            FetchError for sources that could not be retrieved and
            DuplicatePostIdError for sources rejected on an id collision.
    """
    follow_urls = [url for _, url in profile.follows if url and url != profile.source]

    batches, fetch_failures = await fetch_feeds(follow_urls, timeout=timeout, settings=settings, session=session)
    failures: Dict[str, Exception] = dict(fetch_failures)

    feed = Feed()
    feed.ingest(profile, posts)
    for source_profile, source_posts in batches:
        try:
            feed.ingest(source_profile, source_posts)
        except DuplicatePostIdError as e:
            logger.warning(
                "network_source_rejected",
                url=source_profile.source,
                post_id=e.post_id,
                existing_nick=e.existing_profile.nick
            )
            failures[source_profile.source] = e

    return feed, failures
