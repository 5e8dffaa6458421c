# tests/test_order_service.py
import pytest

from models import (
    DcaSchedule,
    DcaStatus,
    LimitOrder,
    LimitStatus,
    Position,
    PositionSource,
    RecordKind,
    TradeSide,
)

pytestmark = pytest.mark.asyncio

HOUR_MS = 3_600_000


async def _seed_limits(store):
    a = LimitOrder(side=TradeSide.BUY, token="bonk", symbol="BONK", target_price_usd=1, amount=1)
    b = LimitOrder(side=TradeSide.SELL, token="wif", symbol="WIF", target_price_usd=3, amount=2)
    b.fill(10)
    await store.save("42", RecordKind.LIMITS, [a, b])
    return a, b


async def _seed_dca(store, now):
    d = DcaSchedule(
        token="bonk", symbol="BONK", interval="1h", interval_ms=HOUR_MS,
        amount_per_run=0.1, next_run_at=now + HOUR_MS,
    )
    await store.save("42", RecordKind.DCA, [d])
    return d


async def test_positions_newest_first_and_limited(orders, store):
    await store.save("42", RecordKind.POSITIONS, [
        Position(symbol=f"T{i}", amount_sol=0.1, source=PositionSource.SIMULATED_BUY, timestamp=i)
        for i in range(25)
    ])

    latest = await orders.positions("42")

    assert len(latest) == 20
    assert latest[0].symbol == "T24"
    assert latest[-1].symbol == "T5"


async def test_limit_history_only_filled(orders, store):
    a, b = await _seed_limits(store)
    assert [o.id for o in await orders.limits("42")] == [a.id, b.id]
    assert [o.id for o in await orders.limit_history("42")] == [b.id]


async def test_cancel_limit(orders, store, clock):
    a, b = await _seed_limits(store)

    assert await orders.cancel_limit("42", a.id) is True
    assert await orders.cancel_limit("42", b.id) is False
    assert await orders.cancel_limit("42", "missing") is False

    by_id = {o.id: o for o in await store.load("42", RecordKind.LIMITS)}
    assert by_id[a.id].status == LimitStatus.CANCELLED
    assert by_id[a.id].cancelled_at == clock.now
    assert by_id[b.id].status == LimitStatus.FILLED


async def test_cancel_all_limits_empties_collection(orders, store):
    await _seed_limits(store)
    await orders.cancel_all_limits("42")
    assert await store.load("42", RecordKind.LIMITS) == []


async def test_pause_resume_cancel_dca(orders, store, clock):
    d = await _seed_dca(store, clock.now)

    assert await orders.resume_dca("42", d.id) is False
    assert await orders.pause_dca("42", d.id) is True
    [loaded] = await orders.dca_schedules("42")
    assert loaded.status == DcaStatus.PAUSED
    assert [x.id for x in await orders.dca_history("42")] == [d.id]

    clock.advance(5 * HOUR_MS)
    assert await orders.resume_dca("42", d.id) is True
    [loaded] = await orders.dca_schedules("42")
    assert loaded.status == DcaStatus.ACTIVE
    assert loaded.next_run_at == clock.now + HOUR_MS
    assert await orders.dca_history("42") == []

    assert await orders.cancel_dca("42", d.id) is True
    assert await orders.cancel_dca("42", d.id) is False
    [loaded] = await orders.dca_schedules("42")
    assert loaded.status == DcaStatus.CANCELLED


async def test_cancel_all_dca(orders, store, clock):
    await _seed_dca(store, clock.now)
    await orders.cancel_all_dca("42")
    assert await orders.dca_schedules("42") == []
