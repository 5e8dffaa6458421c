# order_service.py
from __future__ import annotations

import logging
from typing import Callable, List

from errors import InvalidTransition
from models import DcaSchedule, DcaStatus, LimitOrder, LimitStatus, Position, RecordKind, now_ms

logger = logging.getLogger(__name__)


class OrderService:
    """
    Consultas y mutaciones de usuario sobre sus órdenes (listar, historial,
    cancelar, pausar). Todas las escrituras pasan por store.update, que toma
    el mismo lock por colección que los sweeps.
    """

    def __init__(self, store, clock: Callable[[], int] = now_ms) -> None:
        self.store = store
        self.clock = clock

    # ----------------- Lecturas -----------------

    async def positions(self, user_id: str, limit: int = 20) -> List[Position]:
        """Últimas `limit` posiciones, la más nueva primero."""
        records = await self.store.load(user_id, RecordKind.POSITIONS)
        return list(reversed(records[-limit:]))

    async def limits(self, user_id: str) -> List[LimitOrder]:
        return await self.store.load(user_id, RecordKind.LIMITS)

    async def limit_history(self, user_id: str) -> List[LimitOrder]:
        return [o for o in await self.limits(user_id) if o.status == LimitStatus.FILLED]

    async def dca_schedules(self, user_id: str) -> List[DcaSchedule]:
        return await self.store.load(user_id, RecordKind.DCA)

    async def dca_history(self, user_id: str) -> List[DcaSchedule]:
        return [d for d in await self.dca_schedules(user_id) if d.status != DcaStatus.ACTIVE]

    # ----------------- Mutaciones -----------------

    async def cancel_limit(self, user_id: str, order_id: str) -> bool:
        now = self.clock()

        def mutate(orders: List[LimitOrder]) -> bool:
            for o in orders:
                if o.id == order_id:
                    o.cancel(now)
                    return True
            return False

        return await self._apply(user_id, RecordKind.LIMITS, mutate)

    async def cancel_all_limits(self, user_id: str) -> None:
        async with self.store.lock(user_id, RecordKind.LIMITS):
            await self.store.save(user_id, RecordKind.LIMITS, [])
        logger.info("[Orders] %s: todas las órdenes límite eliminadas", user_id)

    async def pause_dca(self, user_id: str, dca_id: str) -> bool:
        return await self._apply_dca(user_id, dca_id, lambda d: d.pause())

    async def resume_dca(self, user_id: str, dca_id: str) -> bool:
        now = self.clock()
        return await self._apply_dca(user_id, dca_id, lambda d: d.resume(now))

    async def cancel_dca(self, user_id: str, dca_id: str) -> bool:
        return await self._apply_dca(user_id, dca_id, lambda d: d.cancel())

    async def cancel_all_dca(self, user_id: str) -> None:
        async with self.store.lock(user_id, RecordKind.DCA):
            await self.store.save(user_id, RecordKind.DCA, [])
        logger.info("[Orders] %s: todos los DCA eliminados", user_id)

    # ----------------- helpers -----------------

    async def _apply_dca(self, user_id: str, dca_id: str, action) -> bool:
        def mutate(schedules: List[DcaSchedule]) -> bool:
            for d in schedules:
                if d.id == dca_id:
                    action(d)
                    return True
            return False

        return await self._apply(user_id, RecordKind.DCA, mutate)

    async def _apply(self, user_id: str, kind: RecordKind, mutate) -> bool:
        """True si se encontró y cambió el registro; False si no existe o no se permite."""
        found = False

        def wrapped(records) -> bool:
            nonlocal found
            try:
                found = mutate(records)
            except InvalidTransition as exc:
                logger.info("[Orders] %s: %s", user_id, exc)
                found = False
            return found

        await self.store.update(user_id, kind, wrapped)
        return found
