"""Polling worker: one booking at a time, crash-safe shutdown"""

import asyncio
import signal
from typing import Optional

from loguru import logger

from .config import POLL_INTERVAL
from .engine import BookingEngine
from .models import Booking, BookingStatus
from .notifications import DocumentService, Mailer, notify_confirmation
from .store import BookingStore
from .synchronizer import BookingSynchronizer


class BookingWorker:
    """
    Picks the oldest eligible Pending booking, runs it, records the outcome.

    Shutdown cancels the in-flight run; the run's cancellation handler puts
    its booking back to Pending so nothing is left stuck in Processing.
    """

    def __init__(
        self,
        store: BookingStore,
        engine: BookingEngine,
        synchronizer: BookingSynchronizer,
        documents: Optional[DocumentService] = None,
        mailer: Optional[Mailer] = None,
        poll_interval: float = POLL_INTERVAL,
        run_once: bool = False,
        booking_id: Optional[str] = None,
    ):
        """
        Args:
            store: Booking persistence
            engine: Automation core
            synchronizer: Only writer of booking status
            documents: Ticket document collaborator
            mailer: Confirmation e-mail collaborator
            poll_interval: Seconds between polls when the queue is empty
            run_once: Stop after a single poll
            booking_id: Process this booking instead of polling the queue
        """
        self.store = store
        self.engine = engine
        self.synchronizer = synchronizer
        self.documents = documents or DocumentService()
        self.mailer = mailer or Mailer()
        self.poll_interval = poll_interval
        self.run_once = run_once or booking_id is not None
        self.booking_id = booking_id

        self._stop = asyncio.Event()
        self._current: Optional[asyncio.Task] = None

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def recover_stale(self) -> int:
        """Return bookings left in Processing by a previous crash to the queue"""
        stale = await self.store.find_by_status(BookingStatus.PROCESSING)
        for booking in stale:
            await self.synchronizer.revert_to_pending(booking)
        if stale:
            logger.warning(f"♻️ Recovered {len(stale)} booking(s) stuck in Processing")
        return len(stale)

    async def next_booking(self) -> Optional[Booking]:
        if self.booking_id is None:
            return await self.store.find_next_eligible_pending()

        booking = await self.store.find_by_id(self.booking_id)
        if booking is None:
            logger.error(f"Booking {self.booking_id} not found")
            return None
        if booking.status != BookingStatus.PENDING or booking.pnr:
            logger.warning(
                f"Booking {booking.id} is {booking.status.value}"
                + (f" with reference {booking.pnr}" if booking.pnr else "")
                + ", not processing"
            )
            return None
        return booking

    async def process(self, booking: Booking) -> Booking:
        """Run one booking through the engine and persist the result"""
        with logger.contextualize(booking_id=booking.id):
            return await self._process(booking)

    async def _process(self, booking: Booking) -> Booking:
        await self.synchronizer.mark_processing(booking)
        try:
            outcome = await self.engine.run(booking)
        except asyncio.CancelledError:
            await self.synchronizer.revert_to_pending(booking)
            raise
        except Exception as e:
            return await self.synchronizer.apply_failure(booking, e)

        booking = await self.synchronizer.apply_success(booking, outcome)

        paths = await notify_confirmation(booking, self.documents, self.mailer)
        if paths and not booking.pdf_path:
            booking = await self.synchronizer.attach_document(booking, str(paths[0]))
        return booking

    async def run_cycle(self) -> bool:
        """
        Poll once and process at most one booking.

        Returns:
            True if a booking was processed
        """
        booking = await self.next_booking()
        if booking is None:
            return False

        self._current = asyncio.create_task(self.process(booking))
        try:
            await self._current
        finally:
            self._current = None
        return True

    async def _idle(self) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """Main loop; returns after shutdown() or a single cycle in run-once mode"""
        logger.info("=" * 60)
        logger.info(f"🚀 Booking worker started (poll every {self.poll_interval:g}s)")
        logger.info("=" * 60)

        await self.recover_stale()

        while not self.stopping:
            try:
                processed = await self.run_cycle()
            except asyncio.CancelledError:
                if self.stopping:
                    break
                raise
            except Exception as e:
                # Store or collaborator fault outside a booking run
                logger.exception(f"Worker cycle failed: {e}")
                processed = False

            if self.run_once:
                break
            if not processed:
                await self._idle()

        logger.info("👋 Booking worker stopped")

    async def shutdown(self) -> None:
        """Stop polling and cancel the in-flight booking, if any"""
        if self.stopping:
            return
        logger.warning("🛑 Shutdown requested")
        self._stop.set()

        task = self._current
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, lambda: asyncio.ensure_future(self.shutdown()))
            except NotImplementedError:
                logger.debug(f"Signal handler for {sig.name} not supported here")
