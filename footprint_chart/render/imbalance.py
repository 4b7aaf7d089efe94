"""Bid/ask imbalance classification.

A row is imbalanced when one side traded at least ``ratio`` times the other
(3x by default). Stacked imbalances are runs of adjacent imbalanced rows on the
same side, a common sign of initiative buying or selling.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Protocol

IMBALANCE_RATIO = 3.0


class Imbalance(str, Enum):
    BID = "bid"
    ASK = "ask"
    NONE = "none"


class VolumeRow(Protocol):
    price: float
    bid_volume: float
    ask_volume: float


def classify_imbalance(bid_volume: float, ask_volume: float, ratio: float = IMBALANCE_RATIO) -> Imbalance:
    """``bid`` if bid >= ask * ratio, ``ask`` if ask >= bid * ratio, else ``none``.

    An empty row (both sides 0) is never imbalanced.
    """
    if bid_volume <= 0 and ask_volume <= 0:
        return Imbalance.NONE
    if bid_volume >= ask_volume * ratio:
        return Imbalance.BID
    if ask_volume >= bid_volume * ratio:
        return Imbalance.ASK
    return Imbalance.NONE


@dataclass(frozen=True)
class StackedImbalance:
    side: Imbalance
    high_price: float
    low_price: float
    level_count: int
    volume: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "side": self.side.value,
            "highPrice": self.high_price,
            "lowPrice": self.low_price,
            "levelCount": self.level_count,
            "volume": self.volume,
        }


def find_stacked_imbalances(
    levels: Iterable[VolumeRow],
    ratio: float = IMBALANCE_RATIO,
    min_consecutive: int = 3,
) -> list[StackedImbalance]:
    """Find runs of at least ``min_consecutive`` adjacent same-side imbalanced levels.

    Levels are scanned from the highest price down; results come back in that order.
    """
    if min_consecutive < 1:
        raise ValueError("min_consecutive must be >= 1")

    ordered = sorted(levels, key=lambda lvl: lvl.price, reverse=True)
    stacks: list[StackedImbalance] = []
    run: list[VolumeRow] = []
    run_side = Imbalance.NONE

    def flush() -> None:
        if run_side is not Imbalance.NONE and len(run) >= min_consecutive:
            stacks.append(
                StackedImbalance(
                    side=run_side,
                    high_price=run[0].price,
                    low_price=run[-1].price,
                    level_count=len(run),
                    volume=sum(lvl.bid_volume + lvl.ask_volume for lvl in run),
                )
            )

    for lvl in ordered:
        side = classify_imbalance(lvl.bid_volume, lvl.ask_volume, ratio)
        if side is run_side and side is not Imbalance.NONE:
            run.append(lvl)
            continue
        flush()
        run = [lvl]
        run_side = side
    flush()
    return stacks
