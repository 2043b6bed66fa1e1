"""Command-line interface for the booking worker"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import List, Optional

import orjson
from dotenv import load_dotenv
from loguru import logger

from . import __version__
from .cancellation import CancellationEngine
from .config import DEFAULT_LOG_FILE
from .engine import BookingEngine
from .exceptions import AutobookError, BookingStateError, ReservationNotFoundError
from .logging_config import setup_logging
from .sessions import SessionProvider, check_session
from .settings import ProxySettings, Settings
from .store import JsonBookingStore
from .synchronizer import BookingSynchronizer
from .worker import BookingWorker


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Travel booking automation worker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # Worker
    worker_group = parser.add_argument_group("Worker")
    worker_group.add_argument(
        "--once", action="store_true", help="Process at most one booking and exit"
    )
    worker_group.add_argument(
        "--booking-id", type=str, help="Process this booking instead of polling"
    )
    worker_group.add_argument(
        "--poll-interval", type=float, help="Seconds between polls"
    )

    # Cancellation
    cancel_group = parser.add_argument_group("Cancellation")
    cancel_group.add_argument(
        "--cancel", type=str, metavar="BOOKING_ID", help="Cancel a confirmed booking"
    )

    # Bookings
    bookings_group = parser.add_argument_group("Bookings")
    bookings_group.add_argument(
        "--import", dest="import_file", type=str, metavar="FILE",
        help="Import bookings from a JSON file (object or list)",
    )
    bookings_group.add_argument("--bookings-dir", type=str, help="Booking store directory")

    # Sessions
    session_group = parser.add_argument_group("Sessions")
    session_group.add_argument("--sessions-dir", type=str, help="Saved session directory")
    session_group.add_argument(
        "--check-sessions", action="store_true", help="Report login state of every session"
    )

    # Browser
    browser_group = parser.add_argument_group("Browser")
    browser_group.add_argument(
        "--no-headless", action="store_true", help="Visible browser mode"
    )
    browser_group.add_argument(
        "--proxy", type=str, help="Proxy as host:port or host:port:user:pass"
    )

    # Purchase
    purchase_group = parser.add_argument_group("Purchase")
    purchase_group.add_argument(
        "--dry-run", action="store_true",
        help="Stop before the final purchase click",
    )
    purchase_group.add_argument(
        "--max-attempts", type=int, help="Transient failures allowed per booking"
    )

    # Configuration
    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument("--env-file", type=str, help="Path to a .env file")
    config_group.add_argument("--verbose", action="store_true", help="Debug logging")
    config_group.add_argument("--log-file", type=str, help="Log file path")
    config_group.add_argument(
        "--diagnostics-dir", type=str, help="Where step records and screenshots go"
    )
    config_group.add_argument(
        "--documents-dir", type=str, help="Where saved confirmation documents go"
    )

    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Command-line flags win over environment values"""
    if args.no_headless:
        settings.headless = False
    if args.proxy:
        settings.proxy = ProxySettings.parse(args.proxy)
    if args.dry_run:
        settings.click_final_purchase = False
    if args.max_attempts is not None:
        settings.max_attempts = args.max_attempts
    if args.poll_interval is not None:
        settings.poll_interval = args.poll_interval
    if args.sessions_dir:
        settings.sessions_dir = Path(args.sessions_dir)
    if args.bookings_dir:
        settings.bookings_dir = Path(args.bookings_dir)
    if args.diagnostics_dir:
        settings.diagnostics_dir = Path(args.diagnostics_dir)
    if args.documents_dir:
        settings.documents_dir = Path(args.documents_dir)
    return settings


def load_import_file(path: Path) -> List[dict]:
    data = orjson.loads(path.read_bytes())
    return data if isinstance(data, list) else [data]


def main(argv: Optional[List[str]] = None) -> None:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env_file:
        load_dotenv(args.env_file)
    else:
        load_dotenv()

    log_file = Path(args.log_file) if args.log_file else DEFAULT_LOG_FILE
    setup_logging(verbose=args.verbose, log_file=log_file)

    logger.info("=" * 60)
    logger.info(f"Autobook worker (v{__version__})")
    logger.info("=" * 60)

    try:
        settings = apply_overrides(Settings.from_env(), args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    booking_id = args.booking_id or os.environ.get("WORKER_BOOKING_ID") or None
    run_once = args.once or os.environ.get("WORKER_RUN_ONCE", "").lower() in ("1", "true", "yes")

    if not settings.click_final_purchase:
        logger.warning("🧪 Dry run: the final purchase will not be clicked")

    store = JsonBookingStore(settings.bookings_dir)
    sessions = SessionProvider(settings.sessions_dir, settings.session_glob)
    synchronizer = BookingSynchronizer(store, max_attempts=settings.max_attempts)

    async def run():
        try:
            if args.import_file:
                import_path = Path(args.import_file)
                if not import_path.exists():
                    logger.error(f"Import file not found: {import_path}")
                    sys.exit(1)
                await store.import_records(load_import_file(import_path))
                return

            if args.check_sessions:
                paths = sessions.all_for_lookup()
                if not paths:
                    logger.error(f"No session files in {settings.sessions_dir}")
                    sys.exit(1)
                for path in paths:
                    await check_session(settings, path)
                return

            if args.cancel:
                booking = await store.find_by_id(args.cancel)
                if booking is None:
                    logger.error(f"Booking {args.cancel} not found")
                    sys.exit(1)
                engine = CancellationEngine(settings, sessions)
                with logger.contextualize(booking_id=booking.id):
                    note = await engine.cancel(booking)
                    await synchronizer.mark_cancelled(booking, note)
                return

            engine = BookingEngine(settings, sessions)
            worker = BookingWorker(
                store,
                engine,
                synchronizer,
                poll_interval=settings.poll_interval,
                run_once=run_once,
                booking_id=booking_id,
            )
            worker.install_signal_handlers(asyncio.get_running_loop())
            await worker.run()

        except ReservationNotFoundError as e:
            logger.error(f"🔍 {e}")
            sys.exit(2)
        except BookingStateError as e:
            logger.error(f"⛔ {e}")
            sys.exit(1)
        except AutobookError as e:
            logger.error(f"❌ {e}")
            sys.exit(1)
        except KeyboardInterrupt:
            logger.warning("Interrupted by user")
            sys.exit(1)
        except Exception as e:
            logger.exception(f"Fatal error: {e}")
            sys.exit(1)

    asyncio.run(run())


if __name__ == "__main__":
    main()
