"""Tests for the stale-while-revalidate sheet data source."""

from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

# Ensure the repository's src/ directory is importable without installation.
REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from quiz_sheets.core.cache import MemoryKeyValueStore, SheetCache  # noqa: E402
from quiz_sheets.core.http_client import FetchError, HTTPStatusError  # noqa: E402
from quiz_sheets.core.models import ERROR, LOADING, READY  # noqa: E402
from quiz_sheets.processors.sheet_source import (  # noqa: E402
    SheetDataSource,
    filter_by_game_type,
    select_records,
)

URL_A = "https://example.com/a.csv"
URL_B = "https://example.com/b.csv"

SHEET_V1 = "game_type,question\nx,q1\ny,q2\nx,q3\n"
SHEET_V2 = "game_type,question\nx,new1\n"
SHEET_B = "game_type,question\nx,from-b\n"


class FakeFetcher:
    """Returns canned text per URL; a gate makes a fetch block until released."""

    def __init__(self, responses):
        self.responses = dict(responses)
        self.gates = {}
        self.calls = []
        self.max_attempts = 3

    def gate(self, url):
        event = threading.Event()
        self.gates[url] = event
        return event

    def fetch(self, url):
        self.calls.append(url)
        gate = self.gates.get(url)
        if gate is not None:
            assert gate.wait(5), f"gate for {url} was never released"
        outcome = self.responses[url]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=4)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def cache():
    return SheetCache(MemoryKeyValueStore())


def make_source(fetcher, cache, executor):
    source = SheetDataSource(fetcher, cache, executor=executor)
    states = []
    source.subscribe(states.append)
    return source, states


def questions(state):
    return [r["question"] for r in state.records]


def test_no_url_is_immediately_ready_and_empty(cache, executor):
    fetcher = FakeFetcher({})
    source, states = make_source(fetcher, cache, executor)

    state = source.reload(None)

    assert state.status == READY
    assert state.records == []
    assert not state.is_loading
    assert fetcher.calls == []


def test_cache_miss_loads_in_foreground_and_writes_through(cache, executor):
    fetcher = FakeFetcher({URL_A: SHEET_V1})
    source, states = make_source(fetcher, cache, executor)

    first = source.reload(URL_A)
    assert first.status == LOADING
    assert first.is_loading

    final = source.wait(timeout=5)
    assert final.status == READY
    assert not final.is_from_cache
    assert questions(final) == ["q1", "q2", "q3"]
    assert [s.status for s in states] == [LOADING, READY]
    assert cache.read(URL_A).text == SHEET_V1


def test_cache_miss_failure_surfaces_error_text(cache, executor):
    failure = FetchError(URL_A, 3, HTTPStatusError(404, "Not Found"))
    fetcher = FakeFetcher({URL_A: failure})
    source, states = make_source(fetcher, cache, executor)

    source.reload(URL_A)
    final = source.wait(timeout=5)

    assert final.status == ERROR
    assert final.error == "HTTP 404: Not Found"
    assert not final.is_loading
    assert [s.status for s in states] == [LOADING, ERROR]


def test_cache_hit_serves_stale_data_then_fresh(cache, executor):
    cache.write(URL_A, SHEET_V1)
    fetcher = FakeFetcher({URL_A: SHEET_V2})
    release = fetcher.gate(URL_A)
    source, states = make_source(fetcher, cache, executor)

    state = source.reload(URL_A)

    # Served before the background fetch can complete
    assert state.status == READY
    assert state.is_from_cache
    assert not state.is_loading
    assert questions(state) == ["q1", "q2", "q3"]

    release.set()
    final = source.wait(timeout=5)

    assert final.status == READY
    assert not final.is_from_cache
    assert questions(final) == ["new1"]
    assert [s.is_from_cache for s in states] == [True, False]
    assert cache.read(URL_A).text == SHEET_V2


def test_background_failure_keeps_cached_state(cache, executor):
    cache.write(URL_A, SHEET_V1)
    fetcher = FakeFetcher({URL_A: FetchError(URL_A, 3, OSError("Failed to fetch"))})
    source, states = make_source(fetcher, cache, executor)

    source.reload(URL_A)
    final = source.wait(timeout=5)

    assert len(states) == 1
    assert final is states[0]
    assert final.is_from_cache
    assert final.error is None
    assert cache.read(URL_A).text == SHEET_V1


def test_game_type_filter_keeps_matching_rows_in_order(cache, executor):
    fetcher = FakeFetcher({URL_A: SHEET_V1})
    source, _ = make_source(fetcher, cache, executor)

    source.reload(URL_A, "x")
    final = source.wait(timeout=5)

    assert questions(final) == ["q1", "q3"]


def test_filter_change_reparses_cached_sheet(cache, executor):
    cache.write(URL_A, SHEET_V1)
    fetcher = FakeFetcher({URL_A: SHEET_V1})
    source, _ = make_source(fetcher, cache, executor)

    source.reload(URL_A, "x")
    source.wait(timeout=5)
    state = source.reload(URL_A, "y")

    assert questions(state) == ["q2"]


def test_switching_sources_discards_late_result(cache, executor):
    fetcher = FakeFetcher({URL_A: SHEET_V1, URL_B: SHEET_B})
    release_a = fetcher.gate(URL_A)
    source, states = make_source(fetcher, cache, executor)

    source.reload(URL_A)
    source.reload(URL_B)
    source.wait(timeout=5)
    release_a.set()
    executor.shutdown(wait=True)

    assert questions(source.state) == ["from-b"]
    assert all("q1" not in questions(s) for s in states)
    assert cache.read(URL_A) is None


def test_background_refresh_cannot_overwrite_later_load(cache, executor):
    cache.write(URL_A, SHEET_V1)
    fetcher = FakeFetcher({URL_A: SHEET_V2, URL_B: SHEET_B})
    release_a = fetcher.gate(URL_A)
    source, _ = make_source(fetcher, cache, executor)

    source.reload(URL_A)
    source.reload(URL_B)
    source.wait(timeout=5)
    release_a.set()
    executor.shutdown(wait=True)

    assert questions(source.state) == ["from-b"]
    assert not source.state.is_from_cache


def test_listener_reload_supersedes_load_in_progress(cache, executor):
    fetcher = FakeFetcher({URL_A: SHEET_V1, URL_B: SHEET_B})
    release_b = fetcher.gate(URL_B)
    source = SheetDataSource(fetcher, cache, executor=executor)

    def switch_to_b(state):
        if state.status == LOADING and source.inputs == (URL_A, None):
            source.reload(URL_B)

    source.subscribe(switch_to_b)
    later = []
    source.subscribe(later.append)

    threading.Timer(0.05, release_b.set).start()
    source.reload(URL_A)
    final = source.wait(timeout=5)

    assert final.status == READY
    assert questions(final) == ["from-b"]
    assert fetcher.calls == [URL_B]
    assert [s.status for s in later] == [LOADING, READY]
    assert cache.read(URL_A) is None


def test_unchanged_inputs_do_not_restart(cache, executor):
    fetcher = FakeFetcher({URL_A: SHEET_V1})
    source, _ = make_source(fetcher, cache, executor)

    source.reload(URL_A, "x")
    source.wait(timeout=5)
    generation = source.generation
    source.reload(URL_A, "x")

    assert source.generation == generation
    assert fetcher.calls == [URL_A]
    assert source.inputs == (URL_A, "x")


def test_retry_reruns_load_after_error(cache, executor):
    fetcher = FakeFetcher({URL_A: FetchError(URL_A, 3, OSError("Failed to fetch"))})
    source, states = make_source(fetcher, cache, executor)

    source.reload(URL_A)
    assert source.wait(timeout=5).status == ERROR

    fetcher.responses[URL_A] = SHEET_V1
    source.retry()
    final = source.wait(timeout=5)

    assert final.status == READY
    assert questions(final) == ["q1", "q2", "q3"]
    assert [s.status for s in states] == [LOADING, ERROR, LOADING, READY]


def test_retry_rereads_cache(cache, executor):
    fetcher = FakeFetcher({URL_A: SHEET_V1})
    source, _ = make_source(fetcher, cache, executor)
    source.reload(URL_A)
    source.wait(timeout=5)

    state = source.retry()

    assert state.is_from_cache
    source.wait(timeout=5)


def test_retry_before_reload_is_a_noop(cache, executor):
    source, states = make_source(FakeFetcher({}), cache, executor)
    assert source.retry().status == "idle"
    assert states == []


def test_unsubscribe_stops_notifications(cache, executor):
    source = SheetDataSource(FakeFetcher({}), cache, executor=executor)
    seen = []
    unsubscribe = source.subscribe(seen.append)
    source.reload(None)
    unsubscribe()
    source.reload(None, "x")

    assert len(seen) == 1


def test_owned_executor_is_shut_down_on_close(cache):
    fetcher = FakeFetcher({URL_A: SHEET_V1})
    with SheetDataSource(fetcher, cache) as source:
        source.reload(URL_A)
        assert source.wait(timeout=5).status == READY


def test_filter_helpers():
    records = [{"game_type": "x", "n": "1"}, {"game_type": "y", "n": "2"}, {"game_type": "x", "n": "3"}]
    assert filter_by_game_type(records, "x") == [records[0], records[2]]
    assert filter_by_game_type(records, "") == records
    assert filter_by_game_type(records, None) == records
    assert select_records(SHEET_V1, "y") == [{"game_type": "y", "question": "q2"}]
