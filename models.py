# models.py
from __future__ import annotations

import time
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Type, Union

from errors import InvalidTransition


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    return f"{prefix}_{now_ms()}_{uuid.uuid4().hex[:6]}"


class RecordKind(str, Enum):
    POSITIONS = "positions"
    LIMITS = "limits"
    DCA = "dca"


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class PositionSource(str, Enum):
    SIMULATED_BUY = "simulated_buy"
    SIMULATED_SELL = "simulated_sell"
    DCA_RUN = "dca_run"


class LimitStatus(str, Enum):
    ACTIVE = "ACTIVE"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"


class DcaStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CANCELLED = "CANCELLED"


@dataclass
class Position:
    """Registro append-only de una compra/venta simulada o de una ejecución DCA."""

    KIND: ClassVar[RecordKind] = RecordKind.POSITIONS

    symbol: str
    amount_sol: float
    source: PositionSource
    mint: Optional[str] = None
    entry_price_usd: Optional[float] = None
    amount_tokens: Optional[float] = None
    percent: Optional[int] = None
    timestamp: int = field(default_factory=now_ms)
    id: str = field(default_factory=lambda: new_id("pos"))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["source"] = self.source.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            id=data["id"],
            symbol=data.get("symbol") or "",
            mint=data.get("mint"),
            entry_price_usd=data.get("entry_price_usd"),
            amount_sol=float(data.get("amount_sol") or 0.0),
            amount_tokens=data.get("amount_tokens"),
            percent=data.get("percent"),
            timestamp=int(data.get("timestamp") or 0),
            source=PositionSource(data["source"]),
        )


@dataclass
class LimitOrder:
    KIND: ClassVar[RecordKind] = RecordKind.LIMITS

    side: TradeSide
    token: str
    symbol: str
    target_price_usd: float
    amount: float
    status: LimitStatus = LimitStatus.ACTIVE
    created_at: int = field(default_factory=now_ms)
    filled_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    id: str = field(default_factory=lambda: new_id("limit"))

    def is_triggered_by(self, price: float) -> bool:
        # BUY: el precio bajó hasta el objetivo; SELL: subió hasta el objetivo
        if self.side == TradeSide.BUY:
            return price <= self.target_price_usd
        return price >= self.target_price_usd

    def fill(self, at: int) -> None:
        if self.status != LimitStatus.ACTIVE:
            raise InvalidTransition(f"limit {self.id} is {self.status.value}, cannot fill")
        self.status = LimitStatus.FILLED
        self.filled_at = at

    def cancel(self, at: int) -> None:
        if self.status != LimitStatus.ACTIVE:
            raise InvalidTransition(f"limit {self.id} is {self.status.value}, cannot cancel")
        self.status = LimitStatus.CANCELLED
        self.cancelled_at = at

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["side"] = self.side.value
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LimitOrder":
        return cls(
            id=data["id"],
            side=TradeSide(data["side"]),
            token=data["token"],
            symbol=data.get("symbol") or data["token"].upper(),
            target_price_usd=float(data["target_price_usd"]),
            amount=float(data["amount"]),
            status=LimitStatus(data.get("status", LimitStatus.ACTIVE.value)),
            created_at=int(data.get("created_at") or 0),
            filled_at=data.get("filled_at"),
            cancelled_at=data.get("cancelled_at"),
        )


@dataclass
class DcaSchedule:
    KIND: ClassVar[RecordKind] = RecordKind.DCA

    token: str
    symbol: str
    interval: str
    interval_ms: int
    amount_per_run: float
    next_run_at: int
    status: DcaStatus = DcaStatus.ACTIVE
    created_at: int = field(default_factory=now_ms)
    last_run_at: Optional[int] = None
    run_count: int = 0
    id: str = field(default_factory=lambda: new_id("dca"))

    def is_due(self, now: int) -> bool:
        return self.status == DcaStatus.ACTIVE and self.next_run_at <= now

    def record_run(self, now: int) -> None:
        """
        Marca una ejecución. next_run_at se calcula desde `now` (hora real de
        ejecución), no desde el horario original.
        """
        if self.status != DcaStatus.ACTIVE:
            raise InvalidTransition(f"dca {self.id} is {self.status.value}, cannot run")
        self.last_run_at = now
        self.run_count += 1
        self.next_run_at = now + self.interval_ms

    def pause(self) -> None:
        if self.status != DcaStatus.ACTIVE:
            raise InvalidTransition(f"dca {self.id} is {self.status.value}, cannot pause")
        self.status = DcaStatus.PAUSED

    def resume(self, now: int) -> None:
        if self.status != DcaStatus.PAUSED:
            raise InvalidTransition(f"dca {self.id} is {self.status.value}, cannot resume")
        self.status = DcaStatus.ACTIVE
        # no recuperar las ejecuciones perdidas mientras estuvo pausado
        if self.next_run_at <= now:
            self.next_run_at = now + self.interval_ms

    def cancel(self) -> None:
        if self.status == DcaStatus.CANCELLED:
            raise InvalidTransition(f"dca {self.id} is already CANCELLED")
        self.status = DcaStatus.CANCELLED

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DcaSchedule":
        return cls(
            id=data["id"],
            token=data["token"],
            symbol=data.get("symbol") or data["token"].upper(),
            interval=data.get("interval") or "",
            interval_ms=int(data["interval_ms"]),
            amount_per_run=float(data["amount_per_run"]),
            status=DcaStatus(data.get("status", DcaStatus.ACTIVE.value)),
            created_at=int(data.get("created_at") or 0),
            last_run_at=data.get("last_run_at"),
            next_run_at=int(data["next_run_at"]),
            run_count=int(data.get("run_count") or 0),
        )


@dataclass
class LaunchSummary:
    """Resumen de un launch. Siempre simulado: no hay despliegue on-chain."""

    variant: str
    name: str
    symbol: str
    supply: float
    simulated: bool = True


Record = Union[Position, LimitOrder, DcaSchedule]

RECORD_TYPES: Dict[RecordKind, Type[Any]] = {
    RecordKind.POSITIONS: Position,
    RecordKind.LIMITS: LimitOrder,
    RecordKind.DCA: DcaSchedule,
}


def record_from_dict(kind: RecordKind, data: Dict[str, Any]) -> Record:
    return RECORD_TYPES[kind].from_dict(data)
