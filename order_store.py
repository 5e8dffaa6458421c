# order_store.py
"""
Store de colecciones por usuario: posiciones, órdenes límite y DCAs.

Contrato:
  - load(user_id, kind)  -> lista en orden de inserción (la más nueva al final).
                            Si no hay datos devuelve [] (no es un error).
  - save(user_id, kind, records) -> reemplaza la colección entera.
  - list_users(kind)     -> usuarios que tienen una colección de ese tipo.

El store no bloquea por sí solo en load/save. Para read-modify-write hay que
usar `lock(user_id, kind)` o los helpers `append` / `update`, que serializan
los escritores de la misma colección dentro del proceso (flows y sweeps).
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from typing import Callable, Dict, List, Sequence, Tuple

from errors import PersistenceError
from models import Record, RecordKind, record_from_dict

logger = logging.getLogger(__name__)


class OrderStore:
    """Base común: locks por (usuario, tipo) y helpers de read-modify-write."""

    def __init__(self) -> None:
        self._locks: Dict[Tuple[str, RecordKind], asyncio.Lock] = {}

    # ----------------- API a implementar por cada backend -----------------

    async def load(self, user_id: str, kind: RecordKind) -> List[Record]:
        raise NotImplementedError

    async def save(self, user_id: str, kind: RecordKind, records: Sequence[Record]) -> None:
        raise NotImplementedError

    async def list_users(self, kind: RecordKind) -> List[str]:
        raise NotImplementedError

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    # ----------------- Serialización de escritores -----------------

    def lock(self, user_id: str, kind: RecordKind) -> asyncio.Lock:
        key = (str(user_id), kind)
        lk = self._locks.get(key)
        if lk is None:
            lk = asyncio.Lock()
            self._locks[key] = lk
        return lk

    async def append(self, user_id: str, kind: RecordKind, record: Record) -> None:
        async with self.lock(user_id, kind):
            records = await self.load(user_id, kind)
            records.append(record)
            await self.save(user_id, kind, records)

    async def update(
        self,
        user_id: str,
        kind: RecordKind,
        mutate: Callable[[List[Record]], bool],
    ) -> List[Record]:
        """
        Carga la colección, aplica `mutate` y guarda sólo si devolvió True.
        Devuelve la colección (modificada o no).
        """
        async with self.lock(user_id, kind):
            records = await self.load(user_id, kind)
            if mutate(records):
                await self.save(user_id, kind, records)
            return records


class JsonFileOrderStore(OrderStore):
    """
    Un fichero JSON (array de objetos) por usuario y tipo:
        <data_dir>/positions_<user>.json
        <data_dir>/limits_<user>.json
        <data_dir>/dca_<user>.json

    Las escrituras van a un temporal y luego os.replace, así un lector nunca
    ve un fichero a medio escribir.
    """

    def __init__(self, data_dir: str) -> None:
        super().__init__()
        self.data_dir = data_dir
        os.makedirs(self.data_dir, exist_ok=True)

    def _path(self, user_id: str, kind: RecordKind) -> str:
        return os.path.join(self.data_dir, f"{kind.value}_{user_id}.json")

    async def load(self, user_id: str, kind: RecordKind) -> List[Record]:
        raw = await asyncio.to_thread(self._read, self._path(str(user_id), kind))
        try:
            return [record_from_dict(kind, item) for item in raw]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(
                f"registro inválido en {kind.value} de {user_id}: {exc!r}"
            ) from exc

    async def save(self, user_id: str, kind: RecordKind, records: Sequence[Record]) -> None:
        payload = [r.to_dict() for r in records]
        await asyncio.to_thread(self._write, self._path(str(user_id), kind), payload)

    async def list_users(self, kind: RecordKind) -> List[str]:
        prefix = f"{kind.value}_"
        try:
            names = await asyncio.to_thread(os.listdir, self.data_dir)
        except OSError as exc:
            raise PersistenceError(f"no se pudo listar {self.data_dir}: {exc!r}") from exc
        users = [
            n[len(prefix):-len(".json")]
            for n in names
            if n.startswith(prefix) and n.endswith(".json")
        ]
        return sorted(users)

    # ----------------- I/O síncrono (se ejecuta en un thread) -----------------

    @staticmethod
    def _read(path: str) -> list:
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"no se pudo leer {path}: {exc!r}") from exc
        if not isinstance(data, list):
            raise PersistenceError(f"{path} no contiene un array JSON")
        return data

    @staticmethod
    def _write(path: str, payload: list) -> None:
        directory = os.path.dirname(path) or "."
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as exc:
            raise PersistenceError(f"no se pudo escribir {path}: {exc!r}") from exc
