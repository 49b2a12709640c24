"""
Telegram sync orchestrator - delivers new Plaud recordings to a Telegram channel.

Coordinates one sync cycle:
1. Poll the Plaud trigger for recordings that are new since the last cycle
2. Download each recording's audio through the download action
3. Send it to Telegram with a formatted caption (or a text notice)

Deduplication is the trigger's job: its seen-set persists in the trigger state
file under DATA_DIR, so restarts do not resend anything.

Configuration:
- Timezone for display (auto-detected if not specified)
- Time format (12h/24h/custom strftime)
- Audio or text-only delivery
- Dry run mode for testing
"""

from io import BytesIO
import datetime

import pytz
from telegram import Bot

from plaud_actions import DownloadRecording, DownloadParams
from tools import logger


class TelegramRecordingsSync(object):
    """
    Sends recordings emitted by a PlaudTrigger to a Telegram channel.

    The trigger only reports each recording once; a recording whose delivery
    fails is logged and not retried on the next cycle.
    """

    FORMAT_24H = '%d/%m/%Y %H:%M:%S'
    FORMAT_12H = '%m/%d/%Y %I:%M:%S %p'

    # Bot API upload limit
    MAX_UPLOAD_BYTES = 50 * 1024 * 1024

    def __init__(self, telegram_bot_token, telegram_channel_id, plaud_trigger, plaud_api, timezone=None, time_format=None, send_audio=True, audio_format="original", dry_run=False, bot=None) -> None:
        self._telegram_bot = bot if bot is not None else (None if dry_run else Bot(token=telegram_bot_token))
        self._telegram_channel_id = telegram_channel_id
        self._plaud_trigger = plaud_trigger
        self._download = DownloadRecording(plaud_api)
        self._send_audio = send_audio
        self._audio_format = audio_format
        self._dry_run = dry_run

        self._display_timezone = None
        if timezone:
            try:
                self._display_timezone = pytz.timezone(timezone)
            except pytz.UnknownTimeZoneError:
                logger.warning(f"Invalid TIMEZONE '{timezone}', falling back to auto-detect")

        if self._display_timezone is None:
            try:
                import tzlocal
                self._display_timezone = pytz.timezone(str(tzlocal.get_localzone()))
            except Exception:
                self._display_timezone = pytz.UTC

        logger.info(f"Using timezone for display: {self._display_timezone}")

        self._time_format = self._parse_time_format(time_format)
        logger.info(f"Using time format: {self._time_format}")

    def _parse_time_format(self, time_format):
        """
        Parse TIME_FORMAT setting into strftime format string.

        Args:
            time_format: '24h', '12h', custom strftime format, or None

        Returns:
            Valid strftime format string (defaults to '%c' if invalid)
        """
        if not time_format:
            return '%c'  # System locale default

        time_format_lower = time_format.strip().lower()
        if time_format_lower == '24h':
            return self.FORMAT_24H
        elif time_format_lower == '12h':
            return self.FORMAT_12H
        else:
            try:
                datetime.datetime.now().strftime(time_format)
                return time_format
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid TIME_FORMAT '{time_format}': {e}, using default")
                return '%c'

    @staticmethod
    def _format_duration(duration_ms):
        seconds = int(duration_ms) // 1000
        hours, remainder = divmod(seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        if hours:
            return f"{hours}:{minutes:02d}:{seconds:02d}"
        return f"{minutes}:{seconds:02d}"

    def format_caption(self, recording: dict) -> str:
        """
        Caption like "Weekly sync - 12:03 [18/10/2026 09:15:00]".

        Missing fields are left out; start_time and duration are in milliseconds.
        """
        caption = recording.get("filename") or f"Recording {recording.get('id')}"

        duration = recording.get("duration")
        if isinstance(duration, (int, float)) and duration > 0:
            caption += f" - {self._format_duration(duration)}"

        start_time = recording.get("start_time")
        if isinstance(start_time, (int, float)):
            recorded_at = datetime.datetime.fromtimestamp(start_time / 1000, tz=pytz.UTC)
            caption += f" [{recorded_at.astimezone(self._display_timezone).strftime(self._time_format)}]"

        return caption

    def _download_audio(self, recording_id):
        """Fetch the recording's audio; None if it cannot be downloaded or is too large."""
        try:
            item = self._download.run(DownloadParams(recording_id=recording_id, format=self._audio_format))[0]
        except Exception as e:
            logger.error(f"Failed to download recording {recording_id}: {e}")
            return None

        binary = item.binary["data"]
        if binary.file_size > self.MAX_UPLOAD_BYTES:
            logger.warning(f"Recording {recording_id} is {binary.file_size} bytes, too large for Telegram")
            return None
        return binary

    async def send_recording(self, recording: dict):
        caption = self.format_caption(recording)
        logger.info(f"Caption: {caption}")

        binary = self._download_audio(recording.get("id")) if self._send_audio else None

        if self._dry_run:
            size = f"{binary.file_size} bytes" if binary else "text only"
            logger.info(f"[DRY RUN] Would send: {caption} ({size})")
            return

        if binary:
            await self._telegram_bot.send_audio(
                chat_id=self._telegram_channel_id,
                audio=BytesIO(binary.data),
                filename=binary.file_name,
                caption=caption,
                disable_notification=True,
            )
        else:
            await self._telegram_bot.send_message(
                chat_id=self._telegram_channel_id,
                text=f"New recording: {caption}",
                disable_notification=True,
            )
        logger.debug("Sent recording successfully")

    async def sync(self):
        """
        Main sync entry point.

        Called periodically by the scheduler. A failed poll is logged and the
        next scheduled cycle tries again.
        """
        logger.info("Checking Plaud for new recordings")
        try:
            items = self._plaud_trigger.poll()
        except Exception as e:
            logger.error(str(e))
            return

        if not items:
            return

        # Trigger output is newest first; send in recording order
        sent = 0
        for item in reversed(items):
            try:
                await self.send_recording(item.json)
                sent += 1
            except Exception as e:
                logger.error(f"Failed to send recording {item.json.get('id')}: {e}")

        logger.info(f"Sent {sent} of {len(items)} new recording(s)")
