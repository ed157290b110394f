"""
Flat-file JSON store.

All writes go through one ``asyncio.Lock`` so the read-modify-write of the file
is a single-writer critical section. The file is replaced atomically so readers
never observe a partial document.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..core.models import PaymentRequest, RequestDraft, utcnow
from .base import PaymentRequestStore, SettleOutcome, SettleResult, new_request_id

__all__ = ["FilePaymentRequestStore"]

logger = logging.getLogger(__name__)


def _read_document(path: Path) -> Dict[str, Any]:
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {"requests": {}}
    if not data.strip():
        return {"requests": {}}
    document = json.loads(data)
    document.setdefault("requests", {})
    return document


def _write_document(path: Path, document: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(document, handle, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise


class FilePaymentRequestStore(PaymentRequestStore):
    backend_name = "file"

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        super().__init__(clock=clock)
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, Any]:
        return await asyncio.to_thread(_read_document, self.path)

    async def _save(self, document: Dict[str, Any]) -> None:
        await asyncio.to_thread(_write_document, self.path, document)

    async def open(self) -> None:
        async with self._lock:
            if not self.path.exists():
                await self._save({"requests": {}})
                logger.info("Initialised payment request file %s", self.path)

    async def create(self, draft: RequestDraft) -> PaymentRequest:
        async with self._lock:
            document = await self._load()
            records = document["requests"]
            request_id = new_request_id()
            while request_id in records:
                request_id = new_request_id()
            request = PaymentRequest.from_draft(request_id, draft, self._clock())
            records[request_id] = request.to_record()
            await self._save(document)
        return request

    async def get(self, request_id: str) -> Optional[PaymentRequest]:
        document = await self._load()
        record = document["requests"].get(request_id)
        return PaymentRequest.from_record(record) if record else None

    async def settle_if_pending(self, request_id: str, tx_hash: str) -> SettleResult:
        async with self._lock:
            document = await self._load()
            record = document["requests"].get(request_id)
            if record is None:
                return SettleResult(SettleOutcome.NOT_FOUND)

            current = PaymentRequest.from_record(record)
            if current.is_paid:
                return SettleResult(SettleOutcome.ALREADY_SETTLED, current)

            settled = current.settled(tx_hash, self._clock())
            document["requests"][request_id] = settled.to_record()
            await self._save(document)
        return SettleResult(SettleOutcome.SETTLED, settled)

    async def list(self, creator_wallet: Optional[str] = None) -> List[PaymentRequest]:
        document = await self._load()
        requests = [PaymentRequest.from_record(record) for record in document["requests"].values()]
        if creator_wallet:
            requests = [r for r in requests if r.creator_wallet == creator_wallet]
        return sorted(requests, key=lambda r: r.created_at, reverse=True)

    async def delete(self, request_id: str) -> bool:
        async with self._lock:
            document = await self._load()
            if request_id not in document["requests"]:
                return False
            del document["requests"][request_id]
            await self._save(document)
        return True
