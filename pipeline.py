"""
Keyword pipelines and the worker pool that runs them

One KeywordPipeline per keyword: open a proxy session, page through the
search results, filter what was collected and hand it to the shared sink in
a single append. run_keywords fans the pipelines out over a bounded thread
pool and gathers one PipelineResult per keyword.
"""

import logging
import random
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from config import HarvestConfig
from errors import HarvestError, IOFailure, ProxySetupFailed
from proxy import ProxyIdentity, create_session
from search import fetch_page, filter_urls
from sink import OutputSink

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    PROXY_FAILED = "proxy_failed"
    WRITE_FAILED = "write_failed"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass
class PipelineResult:
    """Outcome of one keyword pipeline."""

    keyword: str
    status: PipelineStatus
    pages_fetched: int = 0
    urls_found: int = 0
    urls_written: int = 0
    error: Optional[str] = None


class KeywordPipeline:
    """Runs the full search-filter-write sequence for a single keyword"""

    def __init__(
        self,
        keyword: str,
        config: HarvestConfig,
        user_agents: Sequence[str],
        sink: OutputSink,
        rng: random.Random,
        fetch: Callable = fetch_page,
        session_factory: Callable = create_session,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.keyword = keyword
        self.config = config
        self.user_agents = user_agents
        self.sink = sink
        self.rng = rng
        self.fetch = fetch
        self.session_factory = session_factory
        self.cancel_event = cancel_event or threading.Event()
        # One identity per pipeline, fixed for all of its pages
        self.identity = ProxyIdentity.create(
            config.proxy_user, config.proxy_pass, config.proxy_country, rng
        )

    def run(self) -> PipelineResult:
        if self.cancel_event.is_set():
            logger.info(f"Skipping '{self.keyword}': run cancelled")
            return PipelineResult(self.keyword, PipelineStatus.CANCELLED)

        try:
            session = self.session_factory(
                self.config.proxy_gate, self.identity, timeout=self.config.timeout
            )
        except ProxySetupFailed as e:
            logger.error(f"Proxy setup failed for '{self.keyword}': {e}")
            return PipelineResult(self.keyword, PipelineStatus.PROXY_FAILED, error=str(e))

        try:
            result, collected = self._collect(session)
        finally:
            session.close()

        urls = filter_urls(collected, blocked=(self.config.filter_domain, "site:"))
        result.urls_found = len(urls)
        try:
            result.urls_written = self.sink.append(urls)
        except IOFailure as e:
            result.status = PipelineStatus.WRITE_FAILED
            result.error = str(e)
            return result

        logger.info(
            f"'{self.keyword}': {result.urls_written} URLs from "
            f"{result.pages_fetched} page(s) [{result.status.value}]"
        )
        return result

    def _collect(self, session):
        """Fetch pages in order until max_pages, the first error, or cancellation"""
        result = PipelineResult(self.keyword, PipelineStatus.SUCCEEDED)
        collected = []
        for page_index in range(self.config.max_pages):
            if self.cancel_event.is_set():
                logger.info(f"'{self.keyword}' cancelled before page {page_index + 1}")
                result.status = PipelineStatus.CANCELLED
                break
            try:
                urls = self.fetch(
                    session,
                    self.keyword,
                    page_index,
                    self.user_agents,
                    self.rng,
                    search_url=self.config.search_url,
                    page_size=self.config.page_size,
                    results_per_page=self.config.results_per_page,
                )
            except HarvestError as e:
                logger.warning(f"Page {page_index + 1} for '{self.keyword}' failed: {e}")
                result.status = PipelineStatus.PARTIAL
                result.error = str(e)
                break
            logger.debug(f"'{self.keyword}' page {page_index + 1}: {len(urls)} URLs")
            collected.extend(urls)
            result.pages_fetched += 1
        return result, collected


def run_keywords(
    keywords: Sequence[str],
    user_agents: Sequence[str],
    config: HarvestConfig,
    sink: OutputSink,
    rng: Optional[random.Random] = None,
    concurrency: Optional[int] = None,
    deadline: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    fetch: Callable = fetch_page,
    session_factory: Callable = create_session,
    on_result: Optional[Callable[[PipelineResult], None]] = None,
) -> List[PipelineResult]:
    """
    Run one pipeline per keyword on a bounded worker pool.

    Args:
        keywords: Queries to search, one pipeline each
        user_agents: Shared read-only User-Agent pool
        config: Run configuration
        sink: Shared output file
        rng: Process-wide random source (a fresh one if omitted)
        concurrency: Worker count, defaults to config.concurrency
        deadline: Seconds after which outstanding pipelines stop early
        cancel_event: External stop signal, set on deadline or interrupt
        on_result: Called in the calling thread as each pipeline finishes,
            including those drained after a KeyboardInterrupt

    Returns:
        PipelineResult per keyword, in keyword order

    Raises:
        ValueError: if concurrency is below 1 or deadline is not positive
        KeyboardInterrupt: re-raised once the pool has drained
    """
    rng = rng or random.Random()
    cancel_event = cancel_event or threading.Event()
    max_workers = concurrency if concurrency is not None else config.concurrency
    if max_workers < 1:
        raise ValueError(f"concurrency must be >= 1, got {max_workers}")
    if deadline is not None and deadline <= 0:
        raise ValueError(f"deadline must be > 0 seconds, got {deadline}")

    pipelines = [
        KeywordPipeline(
            keyword, config, user_agents, sink, rng,
            fetch=fetch, session_factory=session_factory, cancel_event=cancel_event,
        )
        for keyword in keywords
        if keyword.strip()
    ]
    logger.info(f"Starting {len(pipelines)} keyword pipelines with {max_workers} workers")

    timer = None
    if deadline is not None:
        timer = threading.Timer(deadline, cancel_event.set)
        timer.daemon = True
        timer.start()

    results: Dict[int, PipelineResult] = {}

    def gather(futures):
        for future in as_completed(futures):
            index = futures[future]
            if index in results:
                continue
            try:
                result = future.result()
            except Exception as e:
                logger.exception(f"Pipeline for '{pipelines[index].keyword}' crashed")
                result = PipelineResult(
                    pipelines[index].keyword, PipelineStatus.ERROR, error=str(e)
                )
            results[index] = result
            if on_result:
                on_result(result)

    try:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(p.run): i for i, p in enumerate(pipelines)}
            try:
                gather(futures)
            except KeyboardInterrupt:
                # Unstarted pipelines see the event and return at once
                logger.warning("Interrupted, finishing in-flight pipelines")
                cancel_event.set()
                gather({f: i for f, i in futures.items() if i not in results})
                raise
    finally:
        if timer:
            timer.cancel()

    return [results[i] for i in sorted(results)]


def summarize(results: Sequence[PipelineResult]) -> Dict[str, int]:
    """Count results per status and total URLs written"""
    counts = Counter(r.status.value for r in results)
    summary = {status.value: counts.get(status.value, 0) for status in PipelineStatus}
    summary["keywords"] = len(results)
    summary["urls_written"] = sum(r.urls_written for r in results)
    return summary
