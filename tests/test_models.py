# tests/test_models.py
import pytest

from errors import InvalidTransition
from models import (
    DcaSchedule,
    DcaStatus,
    LimitOrder,
    LimitStatus,
    Position,
    PositionSource,
    RecordKind,
    TradeSide,
    record_from_dict,
)

HOUR_MS = 3_600_000


def _limit(side=TradeSide.BUY, target=1.0):
    return LimitOrder(side=side, token="bonk", symbol="BONK", target_price_usd=target, amount=10)


def _dca(next_run_at=1000, interval_ms=HOUR_MS):
    return DcaSchedule(
        token="bonk", symbol="BONK", interval="1h", interval_ms=interval_ms,
        amount_per_run=0.1, next_run_at=next_run_at,
    )


@pytest.mark.parametrize(
    "side,price,expected",
    [
        (TradeSide.BUY, 0.95, True),
        (TradeSide.BUY, 1.00, True),
        (TradeSide.BUY, 1.01, False),
        (TradeSide.SELL, 1.05, True),
        (TradeSide.SELL, 1.00, True),
        (TradeSide.SELL, 0.99, False),
    ],
)
def test_limit_trigger_direction(side, price, expected):
    assert _limit(side=side).is_triggered_by(price) is expected


def test_limit_fill_is_terminal():
    order = _limit()
    order.fill(123)
    assert order.status == LimitStatus.FILLED
    assert order.filled_at == 123

    with pytest.raises(InvalidTransition):
        order.fill(456)
    with pytest.raises(InvalidTransition):
        order.cancel(456)
    assert order.filled_at == 123


def test_limit_cancel_sets_timestamp():
    order = _limit()
    order.cancel(99)
    assert order.status == LimitStatus.CANCELLED
    assert order.cancelled_at == 99
    assert order.filled_at is None


def test_dca_record_run_reschedules_from_execution_time():
    sched = _dca(next_run_at=HOUR_MS)
    now = HOUR_MS + 1
    assert sched.is_due(now)

    sched.record_run(now)

    assert sched.run_count == 1
    assert sched.last_run_at == now
    assert sched.next_run_at == now + HOUR_MS
    assert not sched.is_due(now)


def test_dca_pause_resume_cancel():
    sched = _dca(next_run_at=1000)
    sched.pause()
    assert sched.status == DcaStatus.PAUSED
    assert not sched.is_due(10_000)

    with pytest.raises(InvalidTransition):
        sched.pause()

    # reanudar tarde no dispara las ejecuciones perdidas
    sched.resume(now=50_000)
    assert sched.status == DcaStatus.ACTIVE
    assert sched.next_run_at == 50_000 + HOUR_MS

    sched.cancel()
    assert sched.status == DcaStatus.CANCELLED
    with pytest.raises(InvalidTransition):
        sched.resume(now=60_000)
    with pytest.raises(InvalidTransition):
        sched.cancel()


def test_record_from_dict_restores_enums():
    order = _limit(side=TradeSide.SELL, target=2.5)
    restored = record_from_dict(RecordKind.LIMITS, order.to_dict())
    assert restored == order
    assert restored.side is TradeSide.SELL

    pos = Position(symbol="SOL", amount_sol=0.05, source=PositionSource.SIMULATED_SELL)
    data = pos.to_dict()
    assert data["source"] == "simulated_sell"
    assert "KIND" not in data
    assert record_from_dict(RecordKind.POSITIONS, data) == pos


def test_ids_are_unique():
    assert len({_limit().id for _ in range(50)}) == 50
