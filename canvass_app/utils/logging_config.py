# canvass_app/utils/logging_config.py
"""
Logging bootstrap for the Flask app.

Two formatters are available:
- ``JSONFormatter`` emits one JSON object per line and folds any ``extra={...}``
  context passed to the logger into the entry.
- ``TextFormatter`` is the human-readable format used in development.

``setup_logging`` reads LOG_LEVEL, LOG_FORMAT, LOG_DIR, ENABLE_FILE_LOGGING and
ENABLE_CONSOLE_LOGGING from the app config and can be called again after the
config changes (the test fixtures do this).
"""

import json
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()) | {"message", "asctime"}

_HANDLER_MARKER = "_canvass_handler"


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single JSON line."""

    def __init__(self, app_name: str = "canvass-reconciler"):
        super().__init__()
        self.app_name = app_name

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "app": self.app_name,
            "msg": record.getMessage(),
        }
        if record.name != "root":
            entry["module"] = record.module
        context = {key: value for key, value in vars(record).items() if key not in _RESERVED_ATTRS}
        if context:
            entry["context"] = context
        if record.exc_info and record.exc_info[1]:
            entry["error"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")


def _build_formatter(app) -> logging.Formatter:
    if str(app.config.get("LOG_FORMAT", "json")).lower() == "json":
        return JSONFormatter(app.config.get("APP_NAME", "canvass-reconciler"))
    return TextFormatter()


def setup_logging(app):
    """Configure ``app.logger`` handlers from the app config."""

    level_name = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = _build_formatter(app)

    logger = app.logger
    logger.setLevel(level)

    # Drop handlers installed by a previous call
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(formatter)
        setattr(console, _HANDLER_MARKER, True)
        logger.addHandler(console)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, "canvass.log"),
            maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
            backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter(app.config.get("APP_NAME", "canvass-reconciler")))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Logging configured", extra={"log_level": level_name})
    return logger
