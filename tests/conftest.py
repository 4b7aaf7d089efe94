import asyncio
import inspect

import pytest

from footprint_chart.orderflow import CandleSnapshot, PriceLevel, Side, Trade


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_addoption(parser):
    parser.addini("asyncio_mode", "asyncio execution mode compatibility")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            signature = inspect.signature(test_function)
            filtered_args = {
                name: value
                for name, value in pyfuncitem.funcargs.items()
                if name in signature.parameters
            }
            loop.run_until_complete(test_function(**filtered_args))
        finally:
            loop.run_until_complete(asyncio.sleep(0))
            loop.close()
            asyncio.set_event_loop(None)
        return True
    return None


@pytest.fixture
def make_trade():
    def _make(ts: int, price: float, volume: float = 1.0, side: str = "Buy") -> Trade:
        return Trade(timestamp=ts, price=price, volume=volume, side=Side.parse(side))

    return _make


@pytest.fixture
def make_candle():
    def _make(
        open_time: int,
        low: float = 100.0,
        high: float = 110.0,
        open_: float | None = None,
        close: float | None = None,
        levels: list[tuple[float, float, float]] | None = None,
        cvd: float = 0.0,
        closed: bool = True,
    ) -> CandleSnapshot:
        if levels is None:
            levels = [(low + i, 10.0, 5.0) for i in range(int(high - low) + 1)]
        return CandleSnapshot(
            open_time=open_time,
            open=open_ if open_ is not None else low,
            high=high,
            low=low,
            close=close if close is not None else high,
            levels=tuple(PriceLevel(p, b, a) for p, b, a in levels),
            cvd=cvd,
            closed=closed,
        )

    return _make
