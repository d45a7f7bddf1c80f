import logging
import random
import re
from typing import Iterable, List, Sequence
from urllib.parse import quote_plus, unquote_plus

import requests
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup

from errors import EmptyUserAgentPool, FetchFailed, ParseFailed

logger = logging.getLogger(__name__)

SEARCH_URL = "https://www.google.com/search"
SEARCH_DOMAIN = "google.com"
PAGE_SIZE = 100
RESULTS_PER_PAGE = 10000

REDIRECT_PREFIX = "/url?q="
REDIRECT_PATTERN = re.compile(r"^/url\?q=(.+?)&")
BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def build_search_url(query, page_index, search_url=SEARCH_URL, page_size=PAGE_SIZE,
                     results_per_page=RESULTS_PER_PAGE):
    return (
        f"{search_url}?q={quote_plus(query)}"
        f"&start={page_index * page_size}&num={results_per_page}"
    )


def query_unescape(value: str) -> str:
    """Form-decode value, raising ValueError on a malformed escape"""
    if BAD_ESCAPE.search(value):
        raise ValueError(f"invalid percent escape in {value!r}")
    return unquote_plus(value, errors="strict")


def extract_result_urls(html: str) -> List[str]:
    """
    Pull result destinations out of a search page.

    Only anchors shaped like the engine's redirect links (/url?q=...&...) are
    kept. Returns decoded URLs in page order, without duplicates.
    """
    if not html or not html.strip():
        raise ParseFailed("empty response body")

    try:
        soup = BeautifulSoup(html, "html.parser")
    except ParserRejectedMarkup as e:
        raise ParseFailed(f"unparseable response body: {e}") from e

    urls = []
    seen = set()
    for a in soup.find_all("a", href=True):
        href = a["href"]
        if not href.startswith(REDIRECT_PREFIX):
            continue
        match = REDIRECT_PATTERN.match(href)
        if not match:
            continue
        raw = match.group(1)
        try:
            url = query_unescape(raw)
        except ValueError:
            url = raw
        if url not in seen:
            seen.add(url)
            urls.append(url)
    return urls


def fetch_page(session: requests.Session, query: str, page_index: int,
               user_agents: Sequence[str], rng: random.Random,
               search_url=SEARCH_URL, page_size=PAGE_SIZE,
               results_per_page=RESULTS_PER_PAGE) -> List[str]:
    """
    Fetch one page of search results through the given session.

    Args:
        session: Proxy session owned by the calling pipeline
        query: Raw keyword, escaped here
        page_index: Zero-based page number
        user_agents: Pool to draw this request's User-Agent from
        rng: Random source for the User-Agent pick

    Returns:
        Decoded result URLs found on the page

    Raises:
        EmptyUserAgentPool: if user_agents is empty
        FetchFailed: on any transport error, timeouts included
        ParseFailed: if the body is not a parseable document
    """
    if not user_agents:
        raise EmptyUserAgentPool("user agent pool is empty")

    url = build_search_url(query, page_index, search_url, page_size, results_per_page)
    headers = {
        "User-Agent": rng.choice(user_agents)
    }
    try:
        response = session.get(url, headers=headers)
    except requests.RequestException as e:
        raise FetchFailed(f"request for page {page_index + 1} failed: {e}") from e

    if response.status_code != 200:
        logger.warning(f"Search returned HTTP {response.status_code} for '{query}' page {page_index + 1}")

    return extract_result_urls(response.text)


def filter_urls(urls: Iterable[str], blocked: Sequence[str] = (SEARCH_DOMAIN, "site:")) -> List[str]:
    """Drop URLs containing a blocked substring and repeats, keeping order"""
    seen = set()
    kept = []
    for url in urls:
        if url in seen or any(token in url for token in blocked):
            continue
        seen.add(url)
        kept.append(url)
    return kept
