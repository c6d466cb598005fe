"""
Query fan-out - drives search-term batteries against literature sources.

Two modes:
- sequential_early_stop: terms in order, stop at the first document whose
  detector yields facts
- parallel_all: every term at once, all-settle join, results concatenated
  in term order and deduplicated

Every call is bounded by the per-call timeout and by the remaining time
of the operation's Deadline, and is recorded in the SearchTrace. A failed
or timed-out call contributes nothing.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from medical_mcp.literature.normalizer import dedupe_documents
from medical_mcp.models import NormalizedDocument

from .trace import SearchCall, SearchTrace

logger = logging.getLogger(__name__)

Fetch = Callable[[str], Awaitable[Any]]
Detector = Callable[[NormalizedDocument], list]


class Deadline:
    """Absolute time budget shared by every call of one operation."""

    def __init__(self, seconds: Optional[float] = None):
        self.seconds = seconds
        self._expires_at = time.monotonic() + seconds if seconds else None

    def remaining(self) -> Optional[float]:
        """Seconds left, or None when unbounded."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def bound(self, call_timeout: Optional[float] = None) -> Optional[float]:
        """Timeout for the next call: the smaller of call_timeout and the time left."""
        limits = [t for t in (call_timeout, self.remaining()) if t is not None]
        return min(limits) if limits else None


@dataclass
class EarlyStopResult:
    """Outcome of a sequential early-stop search."""
    document: Optional[NormalizedDocument] = None
    facts: list = field(default_factory=list)
    term: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.document is not None


class FanOut:
    """
    Runs adapter calls for one operation.

    Attributes:
        trace: Where every call is recorded
        deadline: Shared time budget of the operation
        call_timeout: Optional upper bound for a single call
    """

    def __init__(
        self,
        trace: SearchTrace,
        deadline: Optional[Deadline] = None,
        call_timeout: Optional[float] = None,
    ):
        self.trace = trace
        self.deadline = deadline or Deadline()
        self.call_timeout = call_timeout

    def child(self, operation: str) -> "FanOut":
        """A FanOut with its own trace sharing this one's deadline."""
        return FanOut(SearchTrace(operation=operation), self.deadline, self.call_timeout)

    async def _run(self, call: SearchCall, term: str, fetch: Fetch, default: Any = None) -> Any:
        timeout = self.deadline.bound(self.call_timeout)
        try:
            if timeout is not None and timeout <= 0:
                raise asyncio.TimeoutError()
            result = await asyncio.wait_for(fetch(term), timeout)
        except asyncio.TimeoutError:
            logger.warning("%s: %r exceeded the time budget", call.adapter, term)
            call.fail("Deadline exceeded", "TimeoutError")
            return default
        except Exception as e:
            logger.warning("%s: %r failed: %s", call.adapter, term, e)
            call.fail(str(e), type(e).__name__)
            return default

        if isinstance(result, list):
            call.complete(len(result))
        else:
            call.complete(int(result is not None))
        return result

    async def single(self, term: str, fetch: Fetch, source: str, default: Any = None) -> Any:
        """One traced, deadline-bounded call; failures yield `default`."""
        call = self.trace.start_call(term, source)
        return await self._run(call, term, fetch, default)

    async def sequential_early_stop(
        self,
        terms: Sequence[str],
        fetch: Fetch,
        detector: Detector,
        source: str = "",
    ) -> EarlyStopResult:
        """
        Fetch terms in order until a document's detector returns facts.

        Args:
            terms: Search terms, most specific first
            fetch: Async callable returning the documents for one term
            detector: Extractor run on each document
            source: Adapter name for the trace

        Returns:
            The first matching document and its facts; empty when no term matched
        """
        for index, term in enumerate(terms):
            call = self.trace.start_call(term, source)
            documents = await self._run(call, term, fetch, default=[])

            for document in documents or []:
                facts = detector(document)
                if facts:
                    for skipped in terms[index + 1:]:
                        self.trace.skip_call(skipped, source, reason="early stop")
                    return EarlyStopResult(document=document, facts=facts, term=term)

        return EarlyStopResult()

    async def gather(self, requests: Sequence[Tuple[str, str, Fetch]]) -> List[List[NormalizedDocument]]:
        """
        Issue (source, term, fetch) requests concurrently.

        Returns:
            One document list per request, in request order; failed requests
            yield an empty list
        """
        calls = [self.trace.start_call(term, source) for source, term, _ in requests]
        results = await asyncio.gather(
            *[self._run(call, term, fetch, default=[]) for call, (_, term, fetch) in zip(calls, requests)],
            return_exceptions=True,
        )

        documents = []
        for call, result in zip(calls, results):
            if isinstance(result, BaseException):
                logger.warning("%s: unexpected error: %s", call.adapter, result)
                call.fail(str(result), type(result).__name__)
                documents.append([])
            else:
                documents.append(list(result or []))
        return documents

    async def parallel_all(self, terms: Sequence[str], fetch: Fetch, source: str = "") -> List[NormalizedDocument]:
        """
        Fetch every term concurrently.

        Returns:
            Documents concatenated in term order then result order, deduplicated
        """
        per_term = await self.gather([(source, term, fetch) for term in terms])
        documents = dedupe_documents(doc for docs in per_term for doc in docs)
        logger.info(
            "%s: %d terms, %d documents, %d failed calls",
            self.trace.operation, len(terms), len(documents), self.trace.failed_count,
        )
        return documents
