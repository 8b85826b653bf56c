"""Package logging setup and forwarding of log records into the notice stream."""

from __future__ import annotations

import logging

from tunnel_notices.emitter import NoticeEmitter

PACKAGE_LOGGER = "tunnel_notices"
_EMITTER_LOGGER = "tunnel_notices.emitter"


class NoticeLogHandler(logging.Handler):
    """Re-emits log records as ``Info``, ``Alert`` or ``Error`` notices.

    Records from the emitter's own logger are dropped so a failing sink cannot
    feed back into itself.
    """

    def __init__(self, emitter: NoticeEmitter, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self._emitter = emitter
        self.addFilter(lambda record: not record.name.startswith(_EMITTER_LOGGER))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
        except Exception:  # noqa: BLE001 - logging contract: report via handleError.
            self.handleError(record)
            return

        if record.levelno >= logging.ERROR:
            self._emitter.notice_error(message)
        elif record.levelno >= logging.WARNING:
            self._emitter.notice_alert(message)
        else:
            self._emitter.notice_info(message)


def configure_logging(level: str = "INFO", *, forward_to: NoticeEmitter | None = None) -> logging.Logger:
    """Set the package log level and optionally forward records to ``forward_to``.

    Calling again replaces a previously installed forwarding handler.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        if isinstance(handler, NoticeLogHandler):
            logger.removeHandler(handler)
    if forward_to is not None:
        logger.addHandler(NoticeLogHandler(forward_to))
    return logger
