"""
Logging configuration with sensitive data filtering.

Provides a configured logger with automatic masking of credentials in log output
(Plaud bearer tokens, Telegram bot tokens, signed download URLs).
"""

import logging
import os
import re

log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
numeric_level = getattr(logging, log_level, logging.INFO)

VERBOSE = os.getenv('VERBOSE', 'false').lower() in ('true', '1')


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that masks sensitive credentials in log output.

    Automatically detects and masks:
    - Telegram bot tokens (shows first 10 digits)
    - Bearer tokens in Authorization headers (shows first 6 chars)
    - JWTs, which is what Plaud hands out as bearer tokens (shows first 6 chars)
    - Signature query params of pre-signed download URLs
    """

    def __init__(self):
        super().__init__()
        self.patterns = [
            (re.compile(r'(\d{9,10}):([A-Za-z0-9_-]{25,})'), r'\1:[telegram-bot-token-masked]'),
            (re.compile(r'(/bot)(\d{9,10}):([A-Za-z0-9_-]{25,})'), r'\1\2:[telegram-bot-token-masked]'),
            (re.compile(r'(Bearer\s+[A-Za-z0-9_\-\.]{6})[A-Za-z0-9_\-\.=]{10,}'), r'\1[bearer-token-masked]'),
            (re.compile(r'(eyJ[A-Za-z0-9_-]{3})[A-Za-z0-9_\-\.]{30,}'), r'\1[jwt-masked]'),
            (re.compile(r'((?:X-Amz-Signature|Signature)=)[A-Za-z0-9%_\-]+'), r'\1[signature-masked]'),
        ]

    def mask(self, text):
        for pattern, replacement in self.patterns:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args:
            new_args = []
            for arg in record.args if isinstance(record.args, tuple) else [record.args]:
                if isinstance(arg, str):
                    arg = self.mask(arg)
                new_args.append(arg)
            record.args = tuple(new_args) if isinstance(record.args, tuple) else new_args[0]

        return True


logging.basicConfig(
    level=numeric_level,
    format='[%(asctime)s] %(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)

sensitive_filter = SensitiveDataFilter()
root_logger = logging.getLogger()
root_logger.addFilter(sensitive_filter)

# Add filter to all handlers to catch library loggers
for handler in root_logger.handlers:
    handler.addFilter(sensitive_filter)

logger = logging.getLogger(__name__)
