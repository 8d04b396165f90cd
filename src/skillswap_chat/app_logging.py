"""Logging configuration helpers."""

import logging

CONTEXT_FIELDS = ("session_id", "message_id", "status", "kind", "topic", "event")


class ChatContextFormatter(logging.Formatter):
    """Formatter that appends chat identifiers passed through ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = [
            f"{name}={getattr(record, name)}"
            for name in CONTEXT_FIELDS
            if getattr(record, name, None) is not None
        ]
        if not context:
            return base
        return f"{base} [{' '.join(context)}]"


def configure_logging(level: int = logging.INFO) -> None:
    """Attach a single stream handler to the package logger."""
    logger = logging.getLogger("skillswap_chat")
    logger.setLevel(level)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ChatContextFormatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.propagate = False
