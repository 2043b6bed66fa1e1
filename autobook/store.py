"""Booking persistence: one JSON document per booking, async I/O"""

import re
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import aiofiles.os
import orjson
from loguru import logger

from .models import Booking, BookingStatus

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]+$")


class BookingStore:
    """Persistence collaborator interface"""

    async def save(self, booking: Booking) -> None:
        raise NotImplementedError

    async def find_by_id(self, booking_id: str) -> Optional[Booking]:
        raise NotImplementedError

    async def find_next_eligible_pending(self) -> Optional[Booking]:
        raise NotImplementedError

    async def find_by_status(self, status: BookingStatus) -> List[Booking]:
        raise NotImplementedError


class JsonBookingStore(BookingStore):
    """
    Directory of ``<id>.json`` files written with aiofiles + orjson.

    Writes go to a temporary file that replaces the target, so a reader
    never sees half a record. Nothing is cached: every lookup reads disk.
    """

    def __init__(self, directory: Path):
        """
        Args:
            directory: Where booking documents live (created if missing)
        """
        self.directory = directory
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, booking_id: str) -> Path:
        if not _SAFE_ID.match(booking_id) or booking_id.startswith("."):
            raise ValueError(f"Unsafe booking id: {booking_id!r}")
        return self.directory / f"{booking_id}.json"

    async def save(self, booking: Booking) -> None:
        """
        Persist a booking.

        Raises:
            BookingStateError: If the record breaks a Booking invariant
        """
        booking.check_invariants()

        target = self._path(booking.id)
        tmp = target.with_suffix(".json.tmp")
        json_bytes = orjson.dumps(booking.to_dict(), option=orjson.OPT_INDENT_2)

        async with aiofiles.open(tmp, "wb") as f:
            await f.write(json_bytes)
        await aiofiles.os.replace(tmp, target)

        logger.debug(f"💾 Saved booking {booking.id} ({booking.status.value})")

    async def _load(self, path: Path) -> Optional[Booking]:
        try:
            async with aiofiles.open(path, "rb") as f:
                data = orjson.loads(await f.read())
            return Booking.from_dict(data)
        except (OSError, orjson.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"⚠️ Skipping unreadable booking file {path.name}: {e}")
            return None

    async def find_by_id(self, booking_id: str) -> Optional[Booking]:
        path = self._path(booking_id)
        if not path.exists():
            return None
        return await self._load(path)

    async def all(self) -> List[Booking]:
        bookings = []
        for path in sorted(self.directory.glob("*.json")):
            booking = await self._load(path)
            if booking is not None:
                bookings.append(booking)
        return bookings

    async def find_by_status(self, status: BookingStatus) -> List[Booking]:
        return [b for b in await self.all() if b.status == status]

    async def find_next_eligible_pending(self) -> Optional[Booking]:
        """Oldest Pending booking without a reference and with its search fields"""
        eligible = [b for b in await self.all() if b.is_eligible()]
        if not eligible:
            return None
        eligible.sort(key=lambda b: b.created_at)
        return eligible[0]

    async def import_records(self, records: List[Dict[str, Any]]) -> int:
        """
        Add bookings from raw dicts, skipping ids that already exist.

        Records without an id get a generated one. Imported bookings start
        as Pending unless the record says otherwise.

        Returns:
            Number of bookings written
        """
        imported = 0
        for record in records:
            data = dict(record)
            data.setdefault("id", uuid.uuid4().hex[:12])
            booking = Booking.from_dict(data)
            if await self.find_by_id(booking.id) is not None:
                logger.warning(f"⚠️ Booking {booking.id} already exists, skipped")
                continue
            await self.save(booking)
            imported += 1
        logger.info(f"📥 Imported {imported}/{len(records)} booking(s)")
        return imported
