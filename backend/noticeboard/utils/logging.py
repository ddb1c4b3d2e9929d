# backend/noticeboard/utils/logging.py
import logging
import sys
from logging.handlers import RotatingFileHandler
from ..config import settings

LOG_DIR = settings.STORAGE_PATH / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Attributes every LogRecord carries; anything else on a record came from `extra`
RESERVED_ATTRS = frozenset({
    'args', 'asctime', 'created', 'exc_info', 'exc_text', 'filename',
    'funcName', 'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'message', 'msg', 'name', 'pathname', 'process', 'processName',
    'relativeCreated', 'stack_info', 'thread', 'threadName', 'taskName'
})


class ExtrasFormatter(logging.Formatter):
    """Appends structured extras as key=value pairs after the message"""

    def format(self, record):
        line = super().format(record)
        fields = {
            key: value for key, value in record.__dict__.items()
            if key not in RESERVED_ATTRS and not key.startswith('_')
        }
        if not fields:
            return line
        rendered = " ".join(f"{key}={value!r}" for key, value in sorted(fields.items()))
        return f"{line} | {rendered}"


console_formatter = ExtrasFormatter(
    '\033[1;36m%(asctime)s\033[0m - \033[1;33m%(name)s\033[0m - \033[1;35m%(levelname)s\033[0m - %(message)s'
)
file_formatter = ExtrasFormatter(
    '%(asctime)s - %(name)s - %(levelname)s [%(module)s:%(lineno)d] - %(message)s'
)


class PortalLogger:
    """One named component logger writing to its own rotating file and the console"""

    def __init__(self, component: str):
        self.component = component
        self.logger = logging.getLogger(f"noticeboard.{component}")
        self.logger.setLevel(settings.LOG_LEVEL.upper())
        self.logger.propagate = False
        self._attach_handlers()

    def _attach_handlers(self):
        # Re-imports must not duplicate output
        if self.logger.handlers:
            return

        file_handler = RotatingFileHandler(
            LOG_DIR / f"{self.component}.log",
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT
        )
        file_handler.setFormatter(file_formatter)
        self.logger.addHandler(file_handler)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(console_formatter)
        self.logger.addHandler(console_handler)

    @staticmethod
    def _sanitize_extra(extra):
        """Prefix keys that would overwrite LogRecord attributes (logging raises on those)"""
        if not extra:
            return None
        return {
            (f"extra_{key}" if key in RESERVED_ATTRS else key): value
            for key, value in extra.items()
        }

    def _log(self, level, msg, extra=None, exc_info=None):
        self.logger.log(level, msg, extra=self._sanitize_extra(extra), exc_info=exc_info, stacklevel=3)

    def debug(self, msg, extra=None, exc_info=None):
        self._log(logging.DEBUG, msg, extra, exc_info)

    def info(self, msg, extra=None, exc_info=None):
        self._log(logging.INFO, msg, extra, exc_info)

    def warning(self, msg, extra=None, exc_info=None):
        self._log(logging.WARNING, msg, extra, exc_info)

    def error(self, msg, extra=None, exc_info=None):
        self._log(logging.ERROR, msg, extra, exc_info)

    def critical(self, msg, extra=None, exc_info=None):
        self._log(logging.CRITICAL, msg, extra, exc_info)


api_logger = PortalLogger("api")
db_logger = PortalLogger("database")
service_logger = PortalLogger("service")
notify_logger = PortalLogger("notify")

__all__ = ["PortalLogger", "api_logger", "db_logger", "service_logger", "notify_logger"]
