import logging
import os
import re

# "Bearer <token>" anywhere in a message or traceback, e.g. a logged header dict
_BEARER = re.compile(r"(Bearer\s+)([A-Za-z0-9\-._~+/]+=*)")


def mask_token(token: str | None) -> str:
    """Loggable form of a bearer token: length and last four characters only."""
    if not token:
        return "none"
    if len(token) <= 8:
        return "***"
    return f"***{token[-4:]}(len={len(token)})"


def redact(text: str) -> str:
    return _BEARER.sub(lambda m: m.group(1) + mask_token(m.group(2)), text)


class KeyValueFormatter(logging.Formatter):
    """``time=... level=... logger=... message=...`` lines with bearer tokens masked."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "level": record.levelname,
            "logger": record.name,
            "message": redact(record.getMessage()),
        }
        if record.exc_info:
            base["exc_info"] = redact(self.formatException(record.exc_info))
        ts = self.formatTime(record, self.datefmt)
        kv = [f"time={ts}"] + [f"{k}={v}" for k, v in base.items()]
        return " ".join(kv)


def configure_logging() -> None:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(message)s")
    root = logging.getLogger()
    for h in root.handlers:
        h.setFormatter(KeyValueFormatter())
    # aiohttp access/client chatter is not useful at INFO
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
