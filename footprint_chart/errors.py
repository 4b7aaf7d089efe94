"""Error taxonomy for the footprint pipeline.

Nothing in the aggregation or rendering core is fatal: transport failures fall
back to synthetic data, malformed trades are dropped and counted, and layout
problems (missing coordinates, too little space) simply skip a draw pass.
"""

from __future__ import annotations


class FootprintError(Exception):
    """Base class for footprint errors."""


class TransportError(FootprintError, RuntimeError):
    """REST or WebSocket transport failed."""

    def __init__(self, message: str, *, endpoint: str | None = None, status: int | None = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class MalformedTradeError(FootprintError, ValueError):
    """A single trade event could not be parsed."""

    def __init__(self, message: str, raw: object = None):
        super().__init__(message)
        self.raw = raw
