from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from itertools import islice
from time import perf_counter
from typing import Any, Callable, Deque, Generic, Iterator, List, Optional, TypeVar

from .accessor import Page, PageAccessor, TypedAccessor, extract_page, resolve_accessor
from .logging import get_logger, log_event
from .util.errors import FetchFailed, InvalidConfiguration, MalformedPageResult, PagerError

LOG = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    continue_token: str
    limit: int


FetchFunction = Callable[[PageRequest], Any]


class Pager(Generic[T]):
    """
    Lazily lists a collection exposed through continue-token pagination.

    The pager only holds configuration: the fetch function, the page limit and
    the accessor used to read page results. Every iteration starts a fresh
    PageIterator with its own cursor, so one pager can be iterated from many
    threads at once without locking.

        pager = Pager(lambda req: api.list_namespace(limit=req.limit, _continue=req.continue_token),
                      limit=50, result_type=V1NamespaceList)
        for namespace in pager:
            ...

    The limit is advisory; pages larger than it are accepted as returned.
    A server that keeps returning the same continue token is not detected.
    """

    __slots__ = ("_fetch", "_limit", "_accessor")

    def __init__(
        self,
        fetch: FetchFunction,
        limit: int,
        result_type: Optional[type] = None,
        *,
        accessor: Optional[PageAccessor] = None,
    ) -> None:
        if not callable(fetch):
            raise InvalidConfiguration(f"fetch must be callable, got {type(fetch).__name__}")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise InvalidConfiguration(f"Page limit must be a positive integer, got {limit!r}")
        if result_type is not None and accessor is not None:
            resolved = TypedAccessor(result_type, resolve_accessor(accessor))
        else:
            resolved = resolve_accessor(result_type if result_type is not None else accessor)
        self._fetch = fetch
        self._limit = limit
        self._accessor = resolved

    @property
    def fetch(self) -> FetchFunction:
        return self._fetch

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def accessor(self) -> PageAccessor:
        return self._accessor

    def __iter__(self) -> "PageIterator[T]":
        return PageIterator(self)

    def traverse(self) -> "PageIterator[T]":
        """Start a new traversal from the first page."""
        return PageIterator(self)

    def pages(self) -> "PageStream":
        """Start a new traversal yielding one Page per fetch, empty pages included."""
        return PageStream(self)

    def collect(self, max_items: Optional[int] = None) -> List[T]:
        if max_items is None:
            return list(self)
        return list(islice(self, max_items))

    def __repr__(self) -> str:
        return f"Pager(fetch={self._fetch!r}, limit={self._limit})"


class _Session:
    """Cursor state owned by a single traversal."""

    def __init__(self, pager: Pager[Any]) -> None:
        self._pager = pager
        self._token: Optional[str] = None
        self._exhausted = False
        self._pages_fetched = 0
        self._error: Optional[PagerError] = None

    @property
    def continue_token(self) -> Optional[str]:
        return self._token

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    @property
    def failed(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> Optional[PagerError]:
        return self._error

    def _next_page(self) -> Page:
        """
        Fetch the page after the current token and advance the cursor.

        On failure the cursor is left untouched and the error is remembered;
        the session re-raises it on every later call without fetching again.
        """
        if self._error is not None:
            raise self._error
        request = PageRequest(continue_token=self._token or "", limit=self._pager.limit)
        started = perf_counter()
        try:
            result = self._pager.fetch(request)
        except (FetchFailed, MalformedPageResult) as e:
            self._error = e
            raise
        except Exception as e:
            failure = FetchFailed(e)
            self._error = failure
            raise failure from e
        try:
            page = extract_page(result, self._pager.accessor)
        except MalformedPageResult as e:
            self._error = e
            raise

        self._token = page.continue_token
        self._exhausted = not page.has_more
        self._pages_fetched += 1
        log_event(
            LOG,
            logging.DEBUG,
            "Fetched page",
            step="page",
            phase="complete",
            duration_ms=int((perf_counter() - started) * 1000),
            page=self._pages_fetched,
            items=len(page.items),
            has_more=page.has_more,
        )
        return page


class PageIterator(_Session, Iterator[T]):
    """
    One traversal over a pager's items.

    Each next() returns a buffered item or fetches exactly one page. StopIteration
    means the server reported the end of the list; a fetch or parse failure is
    raised instead and re-raised on every later next().
    """

    def __init__(self, pager: Pager[T]) -> None:
        super().__init__(pager)
        self._buffer: Deque[T] = deque()

    def __iter__(self) -> "PageIterator[T]":
        return self

    def __next__(self) -> T:
        while True:
            if self._buffer:
                return self._buffer.popleft()
            if self._error is not None:
                raise self._error
            if self._exhausted:
                raise StopIteration
            self._buffer.extend(self._next_page().items)


class PageStream(_Session, Iterator[Page]):
    def __iter__(self) -> "PageStream":
        return self

    def __next__(self) -> Page:
        if self._error is None and self._exhausted:
            raise StopIteration
        return self._next_page()


def collect_concurrently(
    pager: Pager[T],
    traversals: int,
    max_workers: Optional[int] = None,
) -> List[List[T]]:
    """
    Run independent full traversals of pager on a thread pool.

    Each worker starts its own PageIterator, so no cursor state is shared.
    Returns one item list per traversal in submission order. The error of the
    first failing traversal in that order is raised and traversals that have
    not started yet are cancelled.
    """
    if traversals <= 0:
        raise InvalidConfiguration(f"traversals must be positive, got {traversals}")

    def _run() -> List[T]:
        return list(pager.traverse())

    with ThreadPoolExecutor(max_workers=max_workers or traversals) as executor:
        futures: List[Future[List[T]]] = [executor.submit(_run) for _ in range(traversals)]
        results: List[List[T]] = []
        for idx, fut in enumerate(futures):
            try:
                results.append(fut.result())
            except BaseException:
                for pending in futures[idx + 1 :]:
                    pending.cancel()
                raise
    return results
