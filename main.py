"""
Plaud Recordings to Telegram Sync Application

Entry point for the sync service. Connects to the Plaud API, sets up the
polling trigger with its persisted state, and schedules periodic checks for new
recordings which are delivered to a Telegram channel.

Uses AsyncIOScheduler to run poll cycles at configurable intervals. Set
MANUAL_TEST=true to run a single test poll that prints the latest recording.
"""

from dotenv import load_dotenv

load_dotenv()

from tools import logger
from plaud_connection import PlaudConnection
from plaud_api import PlaudApi
from plaud_trigger import PlaudTrigger
from state_store import JsonFileStateStore, InMemoryStateStore
from telegram_sync import TelegramRecordingsSync

import os
import json
import datetime
import asyncio
from apscheduler.schedulers.asyncio import AsyncIOScheduler

__version__ = "1.0"

PLAUD_BEARER_TOKEN = os.getenv("PLAUD_BEARER_TOKEN")
PLAUD_REGION = os.getenv("PLAUD_REGION", PlaudConnection.DEFAULT_REGION)

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHANNEL_ID = os.getenv("TELEGRAM_CHANNEL_ID")
DRY_RUN = os.getenv("DRY_RUN", "false").lower() in ("true", "1")
MANUAL_TEST = os.getenv("MANUAL_TEST", "false").lower() in ("true", "1")
SEND_AUDIO = os.getenv("SEND_AUDIO", "true").lower() in ("true", "1")
AUDIO_FORMAT = os.getenv("AUDIO_FORMAT", "original")

DATA_DIR = os.getenv("DATA_DIR", ".")
TRIGGER_ID = os.getenv("TRIGGER_ID", "plaud-trigger")
TRIGGER_STATE_FILE = os.path.join(DATA_DIR, "trigger_state.json")

TIMEZONE = os.getenv("TIMEZONE")
TIME_FORMAT = os.getenv("TIME_FORMAT")

try:
    REFRESH_INTERVAL_MINUTES = int(os.getenv("REFRESH_INTERVAL_MINUTES", "5"))
except ValueError:
    logger.warning("Invalid REFRESH_INTERVAL_MINUTES, using default of 5 minutes")
    REFRESH_INTERVAL_MINUTES = 5

try:
    MAX_RECORDINGS = int(os.getenv("MAX_RECORDINGS", str(PlaudTrigger.DEFAULT_MAX_RECORDINGS)))
    if not 1 <= MAX_RECORDINGS <= PlaudTrigger.MAX_RECORDINGS_LIMIT:
        raise ValueError(MAX_RECORDINGS)
except ValueError:
    logger.warning(f"Invalid MAX_RECORDINGS, using default of {PlaudTrigger.DEFAULT_MAX_RECORDINGS}")
    MAX_RECORDINGS = PlaudTrigger.DEFAULT_MAX_RECORDINGS

if AUDIO_FORMAT not in ("original", "opus"):
    logger.warning(f"Invalid AUDIO_FORMAT '{AUDIO_FORMAT}', using 'original'")
    AUDIO_FORMAT = "original"


def run_manual_test(plaud_api):
    """Test poll: show what the trigger would emit, without touching the stored state."""
    trigger = PlaudTrigger(plaud_api, InMemoryStateStore(), TRIGGER_ID, MAX_RECORDINGS)
    items = trigger.poll(manual=True)
    if not items:
        logger.info("No recordings on this account")
        return
    print(json.dumps(items[0].json, indent=2, ensure_ascii=False))


def main():
    """
    Initialize and run the sync service.

    Sets up the Plaud connection, the trigger and its state file, the Telegram
    sync, and starts the scheduler to run periodic poll cycles.
    """
    assert PLAUD_BEARER_TOKEN, "PLAUD_BEARER_TOKEN is required"

    logger.info("Welcome to the Plaud Recordings <-> Telegram Sync")
    logger.info(f"Version: {__version__}")

    plaud_connection = PlaudConnection(PLAUD_BEARER_TOKEN, PLAUD_REGION)
    logger.info(f"Using Plaud API at {plaud_connection.base_url}")

    if not plaud_connection.test_credentials():
        logger.error("Plaud rejected the bearer token, check PLAUD_BEARER_TOKEN and PLAUD_REGION")
        return

    plaud_api = PlaudApi(plaud_connection)

    if MANUAL_TEST:
        run_manual_test(plaud_api)
        return

    assert DRY_RUN or (TELEGRAM_BOT_TOKEN and TELEGRAM_CHANNEL_ID), \
        "TELEGRAM_BOT_TOKEN and TELEGRAM_CHANNEL_ID are required unless DRY_RUN is set"

    state_store = JsonFileStateStore(TRIGGER_STATE_FILE)
    trigger = PlaudTrigger(plaud_api, state_store, TRIGGER_ID, MAX_RECORDINGS)
    if trigger.tracker.is_first_run():
        logger.info("No trigger state yet, the first poll only records existing recordings")

    trs = TelegramRecordingsSync(
        telegram_bot_token=TELEGRAM_BOT_TOKEN,
        telegram_channel_id=TELEGRAM_CHANNEL_ID,
        plaud_trigger=trigger,
        plaud_api=plaud_api,
        timezone=TIMEZONE,
        time_format=TIME_FORMAT,
        send_audio=SEND_AUDIO,
        audio_format=AUDIO_FORMAT,
        dry_run=DRY_RUN
    )

    logger.info("Initialized a Telegram Sync")
    if DRY_RUN:
        logger.warning("DRY RUN MODE ENABLED - Recordings will NOT be sent to Telegram!")
    logger.info(f"Polling every {REFRESH_INTERVAL_MINUTES} minute(s)")

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    scheduler = AsyncIOScheduler(event_loop=loop)
    # One poll per trigger at a time; the seen-set read-modify-write is not locked
    scheduler.add_job(
        trs.sync,
        'interval',
        minutes=REFRESH_INTERVAL_MINUTES,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.datetime.now() + datetime.timedelta(seconds=10)
    )
    scheduler.start()

    try:
        loop.run_forever()
    except (KeyboardInterrupt, SystemExit):
        pass
    finally:
        loop.close()

if __name__ == "__main__":
    main()
