from __future__ import annotations
import logging
import re
from typing import Union


REDACT_PATTERNS = [
    re.compile(r"(sk-ant-[A-Za-z0-9_\-]{20,})"),  # Anthropic keys
    re.compile(r"(sk-[A-Za-z0-9_\-]{20,})"),  # API keys like OpenAI
    re.compile(r"(AIza[0-9A-Za-z_\-]{30,})"),  # Google keys
]

# Gemini carries the key in the query string
_QUERY_KEY = re.compile(r"([?&]key=)[^&\s\"']+")


def redact(value: str) -> str:
    redacted = _QUERY_KEY.sub(r"\1***", value)
    for pat in REDACT_PATTERNS:
        redacted = pat.sub("***", redacted)
    return redacted


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # Keys usually arrive through %-args (urls, headers), so redact the merged message
        record.msg = redact(record.getMessage())
        record.args = None
        # Redact exception info text if present
        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return super().format(record)


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger = logging.getLogger()
    logger.setLevel(level)
    # Clear existing handlers in reload scenarios
    logger.handlers.clear()

    handler = logging.StreamHandler()
    formatter = RedactingFormatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # httpx logs every request url at INFO, which is noisy for streams
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
