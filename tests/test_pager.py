from __future__ import annotations

import json
import threading
from itertools import islice

import pytest

from kube_pager.pager import PageRequest, Pager, collect_concurrently
from kube_pager.util.errors import ApiError, FetchFailed, InvalidConfiguration, MalformedPageResult


def _namespace(name: str) -> dict:
    return {"kind": "Namespace", "apiVersion": "v1", "metadata": {"name": name}}


def _page(names, token=None) -> dict:
    metadata = {"resourceVersion": "1"}
    if token is not None:
        metadata["continue"] = token
    return {"kind": "NamespaceList", "apiVersion": "v1", "metadata": metadata, "items": [_namespace(n) for n in names]}


class RecordingFetch:
    """Serves canned pages keyed by continue token and records every request."""

    def __init__(self, pages) -> None:
        self.pages = pages
        self.requests = []
        self._lock = threading.Lock()

    def __call__(self, request: PageRequest):
        with self._lock:
            self.requests.append(request)
        result = self.pages[request.continue_token]
        if isinstance(result, Exception):
            raise result
        return result


def _names(items) -> list:
    return [item["metadata"]["name"] for item in items]


TWO_PAGES = {
    "": _page(["default"], token="c1"),
    "c1": _page(["kube-system"], token=""),
}


def test_two_pages_yield_items_in_order_with_two_fetches() -> None:
    fetch = RecordingFetch(TWO_PAGES)
    pager = Pager(fetch, 1)

    assert _names(pager) == ["default", "kube-system"]
    assert fetch.requests == [PageRequest("", 1), PageRequest("c1", 1)]


def test_fetch_error_on_first_page_raises_fetch_failed_with_payload() -> None:
    body = json.dumps({"kind": "Status", "status": "Failure", "reason": "BadRequest", "code": 400})
    fetch = RecordingFetch({"": ApiError(400, "Bad Request", body=body)})
    pager = Pager(fetch, 1)

    seen = []
    with pytest.raises(FetchFailed) as excinfo:
        for item in pager:
            seen.append(item)

    assert seen == []
    assert str(excinfo.value) == body
    assert isinstance(excinfo.value.cause, ApiError)
    assert excinfo.value.cause.status == 400
    assert excinfo.value.__cause__ is excinfo.value.cause
    assert len(fetch.requests) == 1


@pytest.mark.parametrize("limit", [0, -1, True, 1.5, "1", None])
def test_invalid_limit_fails_before_any_fetch(limit) -> None:
    fetch = RecordingFetch(TWO_PAGES)

    with pytest.raises(InvalidConfiguration):
        Pager(fetch, limit)

    assert fetch.requests == []


def test_non_callable_fetch_is_rejected() -> None:
    with pytest.raises(InvalidConfiguration):
        Pager("not-a-function", 10)  # type: ignore[arg-type]


def test_construction_and_traversal_start_do_not_fetch() -> None:
    fetch = RecordingFetch(TWO_PAGES)
    pager = Pager(fetch, 1)

    traversal = iter(pager)

    assert fetch.requests == []
    assert traversal.pages_fetched == 0
    assert not traversal.exhausted


def test_items_across_many_pages_keep_server_order() -> None:
    fetch = RecordingFetch(
        {
            "": _page(["a", "b"], token="t1"),
            "t1": _page(["c"], token="t2"),
            "t2": _page(["d", "e", "f"], token="t3"),
            "t3": _page(["g"]),
        }
    )

    assert _names(Pager(fetch, 2)) == ["a", "b", "c", "d", "e", "f", "g"]
    assert [r.continue_token for r in fetch.requests] == ["", "t1", "t2", "t3"]


def test_empty_page_with_token_keeps_fetching() -> None:
    fetch = RecordingFetch(
        {
            "": _page([], token="t1"),
            "t1": _page([], token="t2"),
            "t2": _page(["late"]),
        }
    )

    assert _names(Pager(fetch, 5)) == ["late"]
    assert len(fetch.requests) == 3


def test_empty_last_page_terminates_cleanly() -> None:
    fetch = RecordingFetch({"": _page(["a"], token="t1"), "t1": _page([])})
    traversal = Pager(fetch, 1).traverse()

    assert _names(traversal) == ["a"]
    assert traversal.exhausted
    assert not traversal.failed
    assert len(fetch.requests) == 2


def test_missing_continue_metadata_means_end_of_list() -> None:
    fetch = RecordingFetch({"": {"items": [_namespace("only")]}})

    assert _names(Pager(fetch, 1)) == ["only"]
    assert len(fetch.requests) == 1


def test_exhausted_traversal_keeps_stopping_without_fetching() -> None:
    fetch = RecordingFetch(TWO_PAGES)
    traversal = Pager(fetch, 1).traverse()
    list(traversal)

    with pytest.raises(StopIteration):
        next(traversal)
    with pytest.raises(StopIteration):
        next(traversal)
    assert len(fetch.requests) == 2


def test_failure_mid_stream_yields_prefix_then_error() -> None:
    boom = ConnectionError("connection reset")
    fetch = RecordingFetch(
        {
            "": _page(["a", "b"], token="t1"),
            "t1": _page(["c"], token="t2"),
            "t2": boom,
        }
    )
    traversal = Pager(fetch, 2).traverse()

    seen = []
    with pytest.raises(FetchFailed) as excinfo:
        for item in traversal:
            seen.append(item)

    assert _names(seen) == ["a", "b", "c"]
    assert excinfo.value.cause is boom
    assert traversal.failed
    assert traversal.error is excinfo.value
    # cursor is left where the failing request started
    assert traversal.continue_token == "t2"
    assert not traversal.exhausted
    assert traversal.pages_fetched == 2


def test_failed_traversal_reraises_same_error_without_fetching() -> None:
    fetch = RecordingFetch({"": RuntimeError("server exploded")})
    traversal = Pager(fetch, 1).traverse()

    with pytest.raises(FetchFailed) as first:
        next(traversal)
    with pytest.raises(FetchFailed) as second:
        next(traversal)

    assert second.value is first.value
    assert len(fetch.requests) == 1


def test_malformed_page_terminates_traversal() -> None:
    fetch = RecordingFetch({"": _page(["a"], token="t1"), "t1": {"metadata": {}, "items": None}})
    traversal = Pager(fetch, 1).traverse()

    assert _names([next(traversal)]) == ["a"]
    with pytest.raises(MalformedPageResult):
        next(traversal)
    with pytest.raises(MalformedPageResult):
        next(traversal)
    assert len(fetch.requests) == 2


def test_malformed_result_raised_by_fetch_is_not_wrapped() -> None:
    fetch = RecordingFetch({"": MalformedPageResult("not json")})

    with pytest.raises(MalformedPageResult):
        list(Pager(fetch, 1))


def test_each_pull_fetches_at_most_one_page() -> None:
    fetch = RecordingFetch(TWO_PAGES)

    first = list(islice(Pager(fetch, 1), 1))

    assert _names(first) == ["default"]
    assert len(fetch.requests) == 1


def test_page_limit_is_advisory() -> None:
    fetch = RecordingFetch({"": _page(["a", "b", "c"])})

    assert _names(Pager(fetch, 1)) == ["a", "b", "c"]


def test_pager_restarts_from_first_page_on_each_iteration() -> None:
    fetch = RecordingFetch(TWO_PAGES)
    pager = Pager(fetch, 1)

    assert _names(pager) == _names(pager) == ["default", "kube-system"]
    assert [r.continue_token for r in fetch.requests] == ["", "c1", "", "c1"]


def test_interleaved_traversals_do_not_share_cursor() -> None:
    fetch = RecordingFetch(TWO_PAGES)
    pager = Pager(fetch, 1)
    left = pager.traverse()
    right = pager.traverse()

    assert next(left)["metadata"]["name"] == "default"
    assert next(right)["metadata"]["name"] == "default"
    assert next(left)["metadata"]["name"] == "kube-system"
    assert right.continue_token == "c1"
    assert _names(right) == ["kube-system"]


def test_collect_respects_max_items() -> None:
    fetch = RecordingFetch(TWO_PAGES)
    pager = Pager(fetch, 1)

    assert _names(pager.collect(max_items=1)) == ["default"]
    assert len(fetch.requests) == 1


def test_pages_yields_one_page_per_fetch_including_empty_pages() -> None:
    fetch = RecordingFetch({"": _page([], token="t1"), "t1": _page(["a", "b"])})
    stream = Pager(fetch, 2).pages()

    pages = list(stream)

    assert [len(p.items) for p in pages] == [0, 2]
    assert [p.continue_token for p in pages] == ["t1", None]
    assert stream.exhausted


def test_result_type_rejects_other_page_shapes() -> None:
    class NamespaceList:
        def __init__(self, items, token) -> None:
            self.items = items
            self.metadata = type("ListMeta", (), {"_continue": token})()

    good = Pager(RecordingFetch({"": NamespaceList(["x"], None)}), 1, NamespaceList)
    bad = Pager(RecordingFetch({"": _page(["x"])}), 1, NamespaceList)

    assert list(good) == ["x"]
    with pytest.raises(MalformedPageResult):
        list(bad)


def test_concurrent_traversals_each_see_full_list() -> None:
    traversals = 10
    fetch = RecordingFetch(TWO_PAGES)
    pager = Pager(fetch, 1)

    results = collect_concurrently(pager, traversals)

    assert len(results) == traversals
    for items in results:
        assert _names(items) == ["default", "kube-system"]
    assert len(fetch.requests) == 2 * traversals
    assert sum(1 for r in fetch.requests if r.continue_token == "c1") == traversals


def test_concurrent_traversals_overlap_without_interference() -> None:
    traversals = 10
    barrier = threading.Barrier(traversals, timeout=5)
    inner = RecordingFetch(TWO_PAGES)

    def fetch(request: PageRequest):
        if not request.continue_token:
            # every traversal is mid-flight at once
            barrier.wait()
        return inner(request)

    results = collect_concurrently(Pager(fetch, 1), traversals, max_workers=traversals)

    assert [_names(items) for items in results] == [["default", "kube-system"]] * traversals
    assert len(inner.requests) == 2 * traversals


def test_collect_concurrently_propagates_traversal_error() -> None:
    fetch = RecordingFetch({"": _page(["a"], token="t1"), "t1": TimeoutError("read timed out")})

    with pytest.raises(FetchFailed):
        collect_concurrently(Pager(fetch, 1), 3)


def test_collect_concurrently_requires_positive_traversals() -> None:
    with pytest.raises(InvalidConfiguration):
        collect_concurrently(Pager(RecordingFetch(TWO_PAGES), 1), 0)


def test_collect_concurrently_with_fewer_workers_than_traversals() -> None:
    threads = set()
    inner = RecordingFetch(TWO_PAGES)

    def fetch(request: PageRequest):
        threads.add(threading.get_ident())
        return inner(request)

    results = collect_concurrently(Pager(fetch, 1), 5, max_workers=2)

    assert [_names(items) for items in results] == [["default", "kube-system"]] * 5
    assert len(inner.requests) == 10
    assert 1 <= len(threads) <= 2
