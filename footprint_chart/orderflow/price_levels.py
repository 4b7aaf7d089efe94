"""Per-candle price level table."""

from __future__ import annotations

from typing import Iterable, Iterator

from .models import PriceLevel, Side


class PriceLevelTable:
    """Map from quantized price to accumulated [bid, ask] volume.

    Volumes only ever grow. Resetting a candle means building a new table.
    """

    __slots__ = ("_levels",)

    def __init__(self) -> None:
        self._levels: dict[float, list[float]] = {}

    @classmethod
    def from_levels(cls, levels: Iterable[PriceLevel]) -> "PriceLevelTable":
        table = cls()
        for lvl in levels:
            table.add(lvl.price, bid_volume=lvl.bid_volume, ask_volume=lvl.ask_volume)
        return table

    def add(self, price: float, *, bid_volume: float = 0.0, ask_volume: float = 0.0) -> None:
        if bid_volume < 0 or ask_volume < 0:
            raise ValueError("Level volumes can only accumulate (got a negative amount)")
        entry = self._levels.get(price)
        if entry is None:
            entry = self._levels[price] = [0.0, 0.0]
        entry[0] += float(bid_volume)
        entry[1] += float(ask_volume)

    def add_trade(self, price: float, volume: float, side: Side) -> None:
        if side is Side.BUY:
            self.add(price, bid_volume=volume)
        else:
            self.add(price, ask_volume=volume)

    def get(self, price: float) -> PriceLevel | None:
        entry = self._levels.get(price)
        if entry is None:
            return None
        return PriceLevel(price=price, bid_volume=entry[0], ask_volume=entry[1])

    def levels(self, *, descending: bool = False) -> list[PriceLevel]:
        return [
            PriceLevel(price=p, bid_volume=v[0], ask_volume=v[1])
            for p, v in sorted(self._levels.items(), reverse=descending)
        ]

    @property
    def bid_volume(self) -> float:
        return sum(v[0] for v in self._levels.values())

    @property
    def ask_volume(self) -> float:
        return sum(v[1] for v in self._levels.values())

    @property
    def delta(self) -> float:
        return sum(v[0] - v[1] for v in self._levels.values())

    @property
    def volume(self) -> float:
        return sum(v[0] + v[1] for v in self._levels.values())

    def copy(self) -> "PriceLevelTable":
        clone = PriceLevelTable()
        clone._levels = {p: list(v) for p, v in self._levels.items()}
        return clone

    def __len__(self) -> int:
        return len(self._levels)

    def __contains__(self, price: object) -> bool:
        return price in self._levels

    def __iter__(self) -> Iterator[PriceLevel]:
        return iter(self.levels())
