"""Footprint candlestick charts built from a live trade stream."""

__version__ = "0.4.0"
