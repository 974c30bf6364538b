import pytest

from hedger.indicators import EMAEngine
from hedger.ledger import PositionLedger
from hedger.strategy import StrategyEngine
from hedger.types import Candle, EMASignal, OrderType, SignalType


def _engine(period=3, order_size=100.0, balance=10000.0):
    return StrategyEngine(EMAEngine(), PositionLedger(balance), ema_period=period, order_size=order_size)


def _candle(close, open_, symbol="BTCUSDT", t=0):
    return Candle(symbol, t, t + 1, open_, max(open_, close), min(open_, close), close, 1.0)


def _prime(strategy, closes, symbol="BTCUSDT"):
    prev = closes[0]
    for i, c in enumerate(closes):
        strategy.process_candle(_candle(c, prev, symbol, t=i))
        prev = c


def test_warm_up_rising_series_then_cross_up_opens_entry():
    s = _engine(period=50)
    closes = [round(45.0 + 0.1 * i, 1) for i in range(50)]
    _prime(s, closes)
    assert s.ledger.get_stats().total_orders == 0
    assert s.ema.current_ema("BTCUSDT") == pytest.approx(47.45)

    s.process_candle(_candle(50.5, 47.0, t=50))

    pos = s.ledger.get_position("BTCUSDT")
    assert pos is not None
    assert len(pos.long_orders) == 1
    order = pos.long_orders[0]
    assert order.type == OrderType.ENTRY
    assert order.quantity == pytest.approx(100.0 / 50.5)
    assert order.price == 50.5
    assert not pos.is_hedged


def test_open_above_previous_ema_is_not_a_crossing():
    s = _engine(period=50)
    closes = [round(45.0 + 0.1 * i, 1) for i in range(50)]
    _prime(s, closes)
    s.process_candle(_candle(50.5, 49.9, t=50))
    assert s.ledger.get_stats().total_orders == 0


def test_cross_down_closes_profitable_long_without_hedge():
    s = _engine()
    s.ledger.open_entry_long("BTCUSDT", 100.0, 1.0)
    s.handle_signal(EMASignal("BTCUSDT", SignalType.CROSS_DOWN, 110.0, 112.0, 1))
    assert s.ledger.get_position("BTCUSDT") is None
    assert s.ledger.balance == pytest.approx(10010.0)
    assert s.ledger.get_stats().short_orders == 0


def test_cross_down_partial_close_hedges_the_remainder():
    s = _engine()
    s.ledger.open_entry_long("BTCUSDT", 120.0, 1.0)
    s.ledger.open_average_long("BTCUSDT", 100.0, 1.0)
    s.handle_signal(EMASignal("BTCUSDT", SignalType.CROSS_DOWN, 105.0, 106.0, 1))
    pos = s.ledger.get_position("BTCUSDT")
    assert pos.total_long_size == pytest.approx(1.0)
    assert pos.total_short_size == pytest.approx(1.0)
    assert pos.is_hedged
    assert pos.open_shorts()[0].price == 105.0
    assert s.ledger.balance == pytest.approx(10005.0)


def test_cross_down_while_hedged_stacks_another_hedge():
    s = _engine()
    s.ledger.open_entry_long("BTCUSDT", 120.0, 1.0)
    s.ledger.open_average_long("BTCUSDT", 100.0, 1.0)
    s.ledger.open_hedge_short("BTCUSDT", 110.0, 2.0)

    s.handle_signal(EMASignal("BTCUSDT", SignalType.CROSS_DOWN, 105.0, 106.0, 1))

    pos = s.ledger.get_position("BTCUSDT")
    assert pos.total_long_size == pytest.approx(1.0)
    assert pos.open_longs()[0].price == 120.0
    # existing short is left open, the new one covers the remaining long
    shorts = pos.open_shorts()
    assert [(o.price, o.quantity) for o in shorts] == [(110.0, 2.0), (105.0, pytest.approx(1.0))]
    assert pos.total_short_size == pytest.approx(3.0)
    assert s.ledger.balance == pytest.approx(10005.0)


def test_cross_down_without_longs_does_nothing():
    s = _engine()
    s.handle_signal(EMASignal("BTCUSDT", SignalType.CROSS_DOWN, 105.0, 106.0, 1))
    assert s.ledger.get_stats().total_orders == 0


def test_cross_up_with_exposure_averages_and_closes_shorts():
    s = _engine()
    _prime(s, [10.0, 10.0, 10.0])
    s.ledger.open_entry_long("BTCUSDT", 12.0, 1.0)
    s.ledger.open_hedge_short("BTCUSDT", 11.0, 1.0)

    s.process_candle(_candle(12.0, 10.0, t=3))  # ema 11, previous 10

    pos = s.ledger.get_position("BTCUSDT")
    assert [o.type for o in pos.open_longs()] == [OrderType.ENTRY, OrderType.AVERAGE]
    assert pos.open_longs()[1].quantity == pytest.approx(100.0 / 12.0)
    assert not pos.is_hedged
    assert s.ledger.balance == pytest.approx(9999.0)


def test_full_cycle_entry_then_cross_down_hedges_losing_long():
    s = _engine()
    _prime(s, [10.0, 10.0, 10.0])
    s.process_candle(_candle(12.0, 10.0, t=3))  # cross up -> entry @12
    s.process_candle(_candle(10.0, 12.0, t=4))  # ema 10.5, cross down @10

    pos = s.ledger.get_position("BTCUSDT")
    assert len(pos.open_longs()) == 1
    assert pos.is_hedged
    assert pos.total_short_size == pytest.approx(pos.total_long_size)
    assert pos.total_long_size == pytest.approx(100.0 / 12.0)


def test_price_under_ema_hedges_unhedged_longs():
    s = _engine()
    _prime(s, [10.0, 10.0, 10.0])
    s.ledger.open_entry_long("BTCUSDT", 11.0, 1.0)

    s.process_candle(_candle(9.8, 9.5, t=3))  # ema 9.9, no crossing

    pos = s.ledger.get_position("BTCUSDT")
    assert pos.total_short_size == pytest.approx(1.0)
    assert pos.open_shorts()[0].type == OrderType.HEDGE

    # already hedged: a second dip does not stack another hedge
    s.process_candle(_candle(9.7, 9.6, t=4))
    assert s.ledger.get_position("BTCUSDT").total_short_size == pytest.approx(1.0)


def test_averaging_above_ema_resizes_existing_hedge():
    s = _engine()
    _prime(s, [10.0, 10.0, 10.0])
    s.ledger.open_entry_long("BTCUSDT", 12.0, 1.0)
    s.ledger.open_hedge_short("BTCUSDT", 12.0, 1.0)

    s.process_candle(_candle(10.4, 10.2, t=3))  # ema 10.2, price above, 13% under avg

    pos = s.ledger.get_position("BTCUSDT")
    added = 100.0 / 10.4
    assert pos.total_long_size == pytest.approx(1.0 + added)
    assert pos.total_short_size == pytest.approx(1.0 + added)
    assert len(pos.open_shorts()) == 1
    assert pos.open_shorts()[0].price == 10.4
    assert s.ledger.balance == pytest.approx(10001.6)


def test_no_averaging_within_threshold():
    s = _engine()
    _prime(s, [10.0, 10.0, 10.0])
    s.ledger.open_entry_long("BTCUSDT", 10.3, 1.0)
    s.process_candle(_candle(10.25, 10.2, t=3))  # ema 10.125, under 1% below avg
    assert s.ledger.get_stats().total_orders == 1


class _ExplodingEMA(EMAEngine):
    def update_ema(self, candle, period):
        if candle.symbol == "BAD":
            raise RuntimeError("boom")
        return super().update_ema(candle, period)


def test_errors_are_isolated_per_candle():
    s = StrategyEngine(_ExplodingEMA(), PositionLedger(), ema_period=2)
    s.process_candle(_candle(1.0, 1.0, symbol="BAD"))
    s.process_candle(_candle(5.0, 5.0, symbol="OK", t=0))
    s.process_candle(_candle(5.0, 5.0, symbol="OK", t=1))
    assert s.errors == 1
    assert s.ema.current_ema("OK") == pytest.approx(5.0)
    assert s.get_status()["errors"] == 1


def test_status_and_log_stats():
    s = _engine()
    s.ledger.open_entry_long("BTCUSDT", 100.0, 1.0)
    s.ledger.open_hedge_short("BTCUSDT", 100.0, 1.0)
    status = s.get_status()
    assert status["emaPeriod"] == 3
    assert status["orderSize"] == 100.0
    assert status["stats"]["totalOrders"] == 2
    [summary] = status["activePositions"]
    assert summary["symbol"] == "BTCUSDT"
    assert summary["longOrders"] == 1
    assert summary["shortOrders"] == 1
    assert summary["isHedged"] is True
    assert summary["lastIndex"] == 1
    s.log_stats()
