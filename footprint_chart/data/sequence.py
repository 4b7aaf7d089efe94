"""Bounded, time-ordered candle store shared by the aggregator and readers."""

from __future__ import annotations

import bisect
from typing import TYPE_CHECKING, Iterable, Iterator

if TYPE_CHECKING:
    from footprint_chart.orderflow.models import CandleSnapshot


class CandleSequence:
    """Ascending, unique-by-open-time list of candle snapshots.

    The aggregator is the only writer. Readers call :attr:`candles` to get an
    immutable tuple, so a render pass never observes a half-applied update.
    Once ``max_candles`` is exceeded the oldest candles are dropped first.
    """

    def __init__(self, max_candles: int = 200):
        if max_candles < 1:
            raise ValueError("max_candles must be >= 1")
        self.max_candles = int(max_candles)
        self._candles: list[CandleSnapshot] = []
        self._times: list[int] = []
        self.version = 0

    @property
    def candles(self) -> tuple[CandleSnapshot, ...]:
        return tuple(self._candles)

    @property
    def last(self) -> CandleSnapshot | None:
        return self._candles[-1] if self._candles else None

    def upsert(self, candle: CandleSnapshot) -> bool:
        """Insert or replace ``candle`` by open time.

        Returns True when a new candle was added, False when an existing one
        was replaced.
        """
        t = candle.open_time
        if not self._times or t > self._times[-1]:
            self._candles.append(candle)
            self._times.append(t)
            added = True
        else:
            idx = bisect.bisect_left(self._times, t)
            if idx < len(self._times) and self._times[idx] == t:
                self._candles[idx] = candle
                added = False
            else:
                self._candles.insert(idx, candle)
                self._times.insert(idx, t)
                added = True
        self._trim()
        self.version += 1
        return added

    def replace_all(self, candles: Iterable[CandleSnapshot]) -> None:
        unique: dict[int, CandleSnapshot] = {c.open_time: c for c in candles}
        ordered = [unique[t] for t in sorted(unique)]
        self._candles = ordered
        self._times = [c.open_time for c in ordered]
        self._trim()
        self.version += 1

    def clear(self) -> None:
        self._candles.clear()
        self._times.clear()
        self.version += 1

    def index_of(self, open_time: int) -> int | None:
        idx = bisect.bisect_left(self._times, open_time)
        if idx < len(self._times) and self._times[idx] == open_time:
            return idx
        return None

    def _trim(self) -> None:
        overflow = len(self._candles) - self.max_candles
        if overflow > 0:
            del self._candles[:overflow]
            del self._times[:overflow]

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[CandleSnapshot]:
        return iter(tuple(self._candles))

    def __getitem__(self, index: int) -> CandleSnapshot:
        return self._candles[index]
