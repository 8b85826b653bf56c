"""Logging integration for the notice subsystem."""

from .logging import NoticeLogHandler, configure_logging

__all__ = ["NoticeLogHandler", "configure_logging"]
