"""Compress a candle's price levels into a bounded number of display rows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from footprint_chart.orderflow.models import PriceLevel


@dataclass(frozen=True)
class RenderBucket:
    """One display row: one level, or a contiguous group of levels summed per side."""

    price: float
    bid_volume: float
    ask_volume: float
    level_count: int = 1

    @property
    def delta(self) -> float:
        return self.bid_volume - self.ask_volume

    @property
    def total_volume(self) -> float:
        return self.bid_volume + self.ask_volume


class LevelBucketer:
    """Fixed, order-preserving level compression.

    Groups have a stable size (``ceil(n / max_rows)``) so the same candle
    always buckets the same way, and each group is shown at its middle
    level's price rather than a volume-weighted one.
    """

    @staticmethod
    def max_rows(pixel_height: float, row_height: float) -> int:
        if row_height <= 0:
            raise ValueError("row_height must be > 0")
        return int(math.floor(pixel_height / row_height))

    def bucket(self, levels: Sequence[PriceLevel], max_rows: int) -> list[RenderBucket]:
        """Bucket ``levels`` (sorted by price, descending) into at most ``max_rows`` rows."""
        if max_rows <= 0 or not levels:
            return []
        if len(levels) <= max_rows:
            return [RenderBucket(lvl.price, lvl.bid_volume, lvl.ask_volume) for lvl in levels]

        size = math.ceil(len(levels) / max_rows)
        buckets: list[RenderBucket] = []
        for start in range(0, len(levels), size):
            group = levels[start:start + size]
            buckets.append(
                RenderBucket(
                    price=group[len(group) // 2].price,
                    bid_volume=sum(lvl.bid_volume for lvl in group),
                    ask_volume=sum(lvl.ask_volume for lvl in group),
                    level_count=len(group),
                )
            )
        return buckets
