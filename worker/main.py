import asyncio
import logging
import os
import signal

from dotenv import load_dotenv

from core.database import init_db
from core.ebird import EBIRD_API_BASE, EBirdClient
from core.errors import ConfigurationError
from worker.alerts import AlertDispatcher, LogOnlyTransport, TwilioTransport
from worker.scheduler import CycleReport, PollScheduler

# Load `.env` for local/dev runs (override=True so updates take effect after restart).
load_dotenv(override=True)

# -------- CONFIG --------
CHECK_INTERVAL_MINUTES = float(os.getenv("NOTIFIER_INTERVAL_MINUTES", "15"))
MIN_NOTIFICATION_MINUTES = float(os.getenv("MIN_NOTIFICATION_MINUTES", "60"))
CONCURRENCY = int(os.getenv("NOTIFIER_CONCURRENCY", "1"))
RUN_ONCE = os.getenv("NOTIFIER_RUN_ONCE", "false").lower() == "true"

EBIRD_API_KEY = os.getenv("EBIRD_API_KEY", "")
EBIRD_BASE_URL = os.getenv("EBIRD_API_BASE", EBIRD_API_BASE)
EBIRD_TIMEOUT = float(os.getenv("EBIRD_TIMEOUT_SECONDS", "20"))
EBIRD_MAX_RESULTS = int(os.getenv("EBIRD_MAX_RESULTS", "10"))

TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", "")
TWILIO_TIMEOUT = float(os.getenv("TWILIO_TIMEOUT_SECONDS", "15"))
# ------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
log = logging.getLogger("worker")


def build_transport():
    if TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN and TWILIO_FROM_NUMBER:
        return TwilioTransport(
            TWILIO_ACCOUNT_SID,
            TWILIO_AUTH_TOKEN,
            TWILIO_FROM_NUMBER,
            timeout=TWILIO_TIMEOUT,
        )
    log.warning("Twilio credentials missing; SMS sending is disabled.")
    return LogOnlyTransport()


def build_scheduler() -> PollScheduler:
    """Wire the feed client, transport and store into a scheduler. Raises ConfigurationError."""
    if not EBIRD_API_KEY:
        raise ConfigurationError("EBIRD_API_KEY is required to start the notifier")

    feed = EBirdClient(
        EBIRD_API_KEY,
        base_url=EBIRD_BASE_URL,
        timeout=EBIRD_TIMEOUT,
        max_results=EBIRD_MAX_RESULTS,
    )
    return PollScheduler(
        feed=feed,
        dispatcher=AlertDispatcher(build_transport()),
        min_interval_minutes=MIN_NOTIFICATION_MINUTES,
        concurrency=CONCURRENCY,
    )


async def run_once(scheduler: PollScheduler) -> CycleReport:
    log.info("Checking subscriptions...")
    return await scheduler.run_cycle()


def _install_signal_handlers(scheduler: PollScheduler, stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_stop() -> None:
        log.info("Shutdown requested; finishing current subscription")
        scheduler.request_stop()
        stop.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop)
        except (NotImplementedError, RuntimeError):
            # add_signal_handler is unavailable on Windows event loops
            pass


async def main(scheduler: PollScheduler | None = None):
    scheduler = scheduler or build_scheduler()
    init_db()

    stop = asyncio.Event()
    _install_signal_handlers(scheduler, stop)

    # First cycle runs immediately so a restart doesn't wait a full interval.
    while not stop.is_set():
        try:
            await run_once(scheduler)
        except Exception as e:
            log.exception("Error during run", extra={"error": str(e)})

        if RUN_ONCE or scheduler.stop_requested:
            break

        seconds = CHECK_INTERVAL_MINUTES * 60
        log.info("Sleeping", extra={"seconds": seconds})
        try:
            await asyncio.wait_for(stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    log.info("Worker stopped")


if __name__ == "__main__":
    asyncio.run(main())
