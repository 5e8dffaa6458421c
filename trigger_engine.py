# trigger_engine.py
"""
Motor de disparo de órdenes diferidas.

- Limit Sweep: para cada usuario, cada orden ACTIVE consulta el precio.
    BUY  se llena si price <= target
    SELL se llena si price >= target
  Una orden FILLED/CANCELLED no se vuelve a evaluar nunca (como mucho un fill).
- DCA Sweep: para cada usuario, cada DCA ACTIVE con next_run_at <= now ejecuta
  una compra simulada, agrega una Position(dca_run) y reprograma desde `now`.

Los usuarios se procesan en secuencia. Un error de oráculo o de store en un
usuario se registra y el sweep sigue con el siguiente.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from models import (
    DcaSchedule,
    DcaStatus,
    LimitOrder,
    LimitStatus,
    Position,
    PositionSource,
    RecordKind,
    TradeSide,
    now_ms,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    name: str
    users: int = 0
    evaluated: int = 0
    triggered: int = 0
    failed_users: List[str] = field(default_factory=list)


class TriggerEngine:
    def __init__(
        self,
        store,
        oracle,
        notifier,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.notifier = notifier
        self.clock = clock

    # -------------------------------------------------------------------------
    # Limit Sweep
    # -------------------------------------------------------------------------

    async def run_limit_sweep(self) -> SweepReport:
        report = SweepReport(name="limit")
        for user_id in await self.store.list_users(RecordKind.LIMITS):
            report.users += 1
            try:
                await self._sweep_user_limits(user_id, report)
            except Exception as exc:
                report.failed_users.append(user_id)
                logger.exception("[LimitSweep] Error con usuario %s: %r", user_id, exc)
        if report.triggered:
            logger.info("[LimitSweep] %d órdenes llenadas (%d evaluadas)", report.triggered, report.evaluated)
        return report

    async def _sweep_user_limits(self, user_id: str, report: SweepReport) -> None:
        messages: List[str] = []

        async with self.store.lock(user_id, RecordKind.LIMITS):
            orders: List[LimitOrder] = await self.store.load(user_id, RecordKind.LIMITS)
            changed = False

            for order in orders:
                if order.status != LimitStatus.ACTIVE:
                    continue
                report.evaluated += 1

                price = await self.oracle.resolve_price(order.token)
                if price is None:
                    logger.debug("[LimitSweep] Sin precio para %s, se reintenta en el próximo tick", order.token)
                    continue

                if not order.is_triggered_by(price):
                    continue

                order.fill(self.clock())
                changed = True
                report.triggered += 1
                if order.side == TradeSide.BUY:
                    messages.append(f"✅ BUY limit filled for {order.symbol} @ ${order.target_price_usd}")
                else:
                    messages.append(f"🔴 SELL limit filled for {order.symbol} @ ${order.target_price_usd}")

            if changed:
                await self.store.save(user_id, RecordKind.LIMITS, orders)

        for text in messages:
            await self.notifier.notify(user_id, text)

    # -------------------------------------------------------------------------
    # DCA Sweep
    # -------------------------------------------------------------------------

    async def run_dca_sweep(self) -> SweepReport:
        report = SweepReport(name="dca")
        for user_id in await self.store.list_users(RecordKind.DCA):
            report.users += 1
            try:
                await self._sweep_user_dca(user_id, report)
            except Exception as exc:
                report.failed_users.append(user_id)
                logger.exception("[DcaSweep] Error con usuario %s: %r", user_id, exc)
        if report.triggered:
            logger.info("[DcaSweep] %d ejecuciones DCA (%d evaluadas)", report.triggered, report.evaluated)
        return report

    async def _sweep_user_dca(self, user_id: str, report: SweepReport) -> None:
        messages: List[str] = []

        async with self.store.lock(user_id, RecordKind.DCA):
            schedules: List[DcaSchedule] = await self.store.load(user_id, RecordKind.DCA)
            now = self.clock()
            changed = False

            for sched in schedules:
                if sched.status != DcaStatus.ACTIVE:
                    continue
                report.evaluated += 1
                if not sched.is_due(now):
                    continue

                price = await self._best_effort_price(sched.token)
                pos = Position(
                    symbol=sched.symbol,
                    mint=sched.token,
                    amount_sol=sched.amount_per_run,
                    entry_price_usd=price,
                    timestamp=now,
                    source=PositionSource.DCA_RUN,
                )
                await self.store.append(user_id, RecordKind.POSITIONS, pos)

                sched.record_run(now)
                changed = True
                report.triggered += 1
                messages.append(
                    f"🔁 DCA run executed for {sched.symbol}: {sched.amount_per_run} SOL (simulated)"
                )

            if changed:
                await self.store.save(user_id, RecordKind.DCA, schedules)

        for text in messages:
            await self.notifier.notify(user_id, text)

    async def _best_effort_price(self, token: str) -> Optional[float]:
        try:
            return await self.oracle.resolve_price(token)
        except Exception as exc:
            logger.warning("[DcaSweep] Precio no disponible para %s: %r", token, exc)
            return None


# -----------------------------------------------------------------------------
# Scheduler
# -----------------------------------------------------------------------------

SleepFn = Callable[[float], Awaitable[None]]


@dataclass
class SweepStats:
    ticks: int = 0
    errors: int = 0
    last_tick_at: Optional[float] = None
    last_report: Optional[SweepReport] = None


class SweepScheduler:
    """
    Lanza cada sweep en su propia tarea: sweep -> sleep(period) -> sweep ...
    Un tick nunca se solapa con el siguiente del mismo sweep. `sleep` es
    inyectable para simular ticks en los tests.
    """

    def __init__(
        self,
        engine: TriggerEngine,
        limit_period: float = 15.0,
        dca_period: float = 10.0,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.engine = engine
        self.periods: Dict[str, float] = {"limit": limit_period, "dca": dca_period}
        self.sleep = sleep
        self.stats: Dict[str, SweepStats] = {"limit": SweepStats(), "dca": SweepStats()}
        self._tasks: List[asyncio.Task] = []

    def _sweep_fn(self, name: str) -> Callable[[], Awaitable[SweepReport]]:
        return self.engine.run_limit_sweep if name == "limit" else self.engine.run_dca_sweep

    async def tick(self, name: str) -> Optional[SweepReport]:
        stats = self.stats[name]
        try:
            report = await self._sweep_fn(name)()
        except Exception as exc:
            # p.ej. no se pudo listar usuarios: se reintenta en el próximo tick
            stats.errors += 1
            logger.exception("[%sSweep] Error en tick: %r", name.capitalize(), exc)
            report = None
        stats.ticks += 1
        stats.last_tick_at = time.time()
        if report is not None:
            stats.last_report = report
            stats.errors += len(report.failed_users)
        return report

    async def run(self, name: str, max_ticks: Optional[int] = None) -> None:
        period = self.periods[name]
        logger.info("[%sSweep] Iniciado (cada %.1fs)", name.capitalize(), period)
        done = 0
        while max_ticks is None or done < max_ticks:
            await self.tick(name)
            done += 1
            await self.sleep(period)

    def start(self) -> None:
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._tasks = [loop.create_task(self.run(name)) for name in ("limit", "dca")]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("[Sweeps] Detenidos.")

    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)
