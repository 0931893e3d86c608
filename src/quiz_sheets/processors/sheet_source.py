"""
Stale-while-revalidate loader for one sheet at a time.

``SheetDataSource`` combines the CSV parser, the sheet cache and the resilient
fetcher. The owner calls :meth:`SheetDataSource.reload` whenever the sheet URL
or the ``game_type`` filter changes and observes the resulting
:class:`~quiz_sheets.core.models.LoadState` snapshots through
:meth:`SheetDataSource.subscribe`.

Load procedure for ``(url, game_type)``
---------------------------------------

- No URL: ready with no records.
- Cache hit: ready with the cached records right away (``is_from_cache``),
  then refresh in the background. A successful refresh replaces the records;
  a failed one changes nothing.
- Cache miss: loading, then fetch. Success gives ready records, failure an
  error state carrying the fetch failure text.

Every load is stamped with a generation number. A fetch that completes after
the inputs changed (or after :meth:`SheetDataSource.retry`) is discarded
without touching the state or the cache.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from ..core.cache import SheetCache
from ..core.csv_parser import parse_csv
from ..core.http_client import ResilientFetcher
from ..core.models import LoadState, Record
from ..core.result import Err, Ok, Result

logger = logging.getLogger(__name__)

Listener = Callable[[LoadState], None]

_UNSET = object()


def filter_by_game_type(records: List[Record], game_type: Optional[str]) -> List[Record]:
    """Keep records whose ``game_type`` equals *game_type*; no filter when empty."""
    if not game_type:
        return list(records)
    return [record for record in records if record.get('game_type') == game_type]


def select_records(text: str, game_type: Optional[str] = None) -> List[Record]:
    """Parse sheet text and apply the category filter."""
    return filter_by_game_type(parse_csv(text), game_type)


class SheetDataSource:
    """Observable loader implementing stale-while-revalidate over a sheet cache.

    Args:
        fetcher: Object with ``fetch(url) -> str`` raising on failure
        cache: Sheet cache used for the freshness check and write-through
        executor: Optional executor for network work; a small thread pool is
            created (and owned) when omitted
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        cache: SheetCache,
        *,
        executor: Optional[Executor] = None,
    ):
        self.fetcher = fetcher
        self.cache = cache
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=4, thread_name_prefix="sheet-source")
        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._inputs = _UNSET
        self._generation = 0
        self._state = LoadState.idle()
        self._pending: Optional[Future] = None

    @property
    def state(self) -> LoadState:
        with self._lock:
            return self._state

    @property
    def generation(self) -> int:
        with self._lock:
            return self._generation

    @property
    def inputs(self) -> Optional[Tuple[Optional[str], Optional[str]]]:
        with self._lock:
            return None if self._inputs is _UNSET else self._inputs

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for every state change; returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def reload(self, url: Optional[str], game_type: Optional[str] = None) -> LoadState:
        """Point the source at ``(url, game_type)``.

        Starts a new load when the inputs differ from the last call (or on the
        first call) and returns the state right after the synchronous part of
        the load. Unchanged inputs return the current state untouched.
        """
        inputs = (url or None, game_type or None)
        with self._lock:
            if inputs == self._inputs:
                return self._state
            self._inputs = inputs
            return self._start()

    def retry(self) -> LoadState:
        """Re-run the whole load for the current inputs, re-reading the cache."""
        with self._lock:
            if self._inputs is _UNSET:
                logger.debug("retry() called before any reload(); nothing to do")
                return self._state
            return self._start()

    def wait(self, timeout: Optional[float] = None) -> LoadState:
        """Block until the most recently started fetch has finished.

        Follows loads started by listeners while waiting.
        """
        while True:
            with self._lock:
                pending = self._pending
            if pending is None:
                break
            pending.result(timeout=timeout)
            with self._lock:
                if self._pending is pending:
                    break
        return self.state

    def close(self) -> None:
        """Stop observing results and shut down the owned thread pool."""
        with self._lock:
            self._generation += 1
            self._listeners.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _start(self) -> LoadState:
        # Caller holds the lock.
        self._generation += 1
        token = self._generation
        url, game_type = self._inputs
        self._pending = None

        if not url:
            self._apply(token, LoadState.ready([]))
            return self._state

        cached = self.cache.read(url)
        if cached is not None:
            logger.info(f"Serving cached sheet for {url}; refreshing in background")
            if self._apply(token, LoadState.ready(select_records(cached.text, game_type), from_cache=True)):
                self._submit(token, url, game_type, background=True)
        else:
            logger.info(f"No fresh cache for {url}; fetching")
            if self._apply(token, LoadState.loading()):
                self._submit(token, url, game_type, background=False)
        return self._state

    def _submit(self, token: int, url: str, game_type: Optional[str], *, background: bool) -> None:
        self._pending = self._executor.submit(self._run_fetch, token, url, game_type, background)

    def _fetch_result(self, url: str) -> Result[str]:
        try:
            return Ok(self.fetcher.fetch(url))
        except Exception as exc:
            return Err(str(exc) or type(exc).__name__)

    def _run_fetch(self, token: int, url: str, game_type: Optional[str], background: bool) -> None:
        result = self._fetch_result(url)

        with self._lock:
            if token != self._generation:
                logger.debug(f"Discarding result for {url} from superseded load #{token}")
                return

            if result.ok:
                self.cache.write(url, result.value)
                self._apply(token, LoadState.ready(select_records(result.value, game_type)))
                logger.info(f"Loaded {len(self._state.records)} record(s) from {url}")
            elif background:
                # Stale data wins over an error when the cache had an entry
                logger.debug(f"Background refresh of {url} failed; keeping cached data: {result.error}")
            else:
                logger.error(f"Failed to load sheet {url}: {result.error}")
                self._apply(token, LoadState.failed(result.error))

    def _apply(self, token: int, state: LoadState) -> bool:
        """Publish *state* for generation *token*.

        Returns whether *token* is still current once listeners have run; a
        listener may start a newer load from inside its callback.
        """
        with self._lock:
            if token != self._generation:
                return False
            self._state = state
            listeners = list(self._listeners)
            for listener in listeners:
                try:
                    listener(state)
                except Exception as exc:
                    logger.error(f"State listener {listener!r} failed: {exc}")
                if token != self._generation:
                    break
            return token == self._generation


__all__ = [
    "SheetDataSource",
    "filter_by_game_type",
    "select_records",
]
