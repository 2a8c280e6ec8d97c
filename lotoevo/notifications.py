import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_SEVERITY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "high": logging.WARNING,
    "error": logging.ERROR
}


class Notifier(ABC):
    """Sink for engine events. Calls are fire-and-forget."""

    @abstractmethod
    def notify(self, severity: str, title: str, message: str):
        pass

    @abstractmethod
    def log(self, kind: str, message: str, details: Optional[Dict[str, Any]] = None):
        pass


class LoggingNotifier(Notifier):
    """Routes engine events to the logging module."""

    def __init__(self, name: str = "lotoevo.events"):
        self.logger = logging.getLogger(name)

    def notify(self, severity: str, title: str, message: str):
        level = _SEVERITY_LEVELS.get(severity, logging.INFO)
        self.logger.log(level, f"[{severity.upper()}] {title}: {message}")

    def log(self, kind: str, message: str, details: Optional[Dict[str, Any]] = None):
        # Per-prediction feedback is high volume
        level = logging.DEBUG if kind == "prediction_feedback" else logging.INFO
        suffix = f" | {details}" if details else ""
        self.logger.log(level, f"[{kind}] {message}{suffix}")


class RecordingNotifier(Notifier):
    """Keeps every event in memory."""

    def __init__(self):
        self.notifications: List[Dict[str, str]] = []
        self.logs: List[Dict[str, Any]] = []

    def notify(self, severity: str, title: str, message: str):
        self.notifications.append({"severity": severity, "title": title, "message": message})

    def log(self, kind: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.logs.append({"kind": kind, "message": message, "details": details or {}})

    def of_kind(self, kind: str) -> List[Dict[str, Any]]:
        return [entry for entry in self.logs if entry["kind"] == kind]


def safe_notify(notifier: Optional[Notifier], severity: str, title: str, message: str):
    if notifier is None:
        return
    try:
        notifier.notify(severity, title, message)
    except Exception as e:
        logger.warning(f"Notification sink failed: {e}")


def safe_log(notifier: Optional[Notifier], kind: str, message: str,
             details: Optional[Dict[str, Any]] = None):
    if notifier is None:
        return
    try:
        notifier.log(kind, message, details)
    except Exception as e:
        logger.warning(f"Event log sink failed: {e}")
