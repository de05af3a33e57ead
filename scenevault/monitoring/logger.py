# ============================================================================
# SceneVault -- Structured Logger (scenevault/monitoring/logger.py)
# ============================================================================
#
# WHAT THIS FILE DOES:
#   Sets up structured (JSON) logging for the whole package. Imports,
#   undos, reorders and save conflicts are recorded as events with
#   keyword fields instead of free-form sentences:
#
#     {"event": "ingest_batch_complete", "total": 3, "failed": 1, ...}
#
# LOG FILE TYPES:
#   - app_YYYY-MM-DD.log:   General events (items imported, reorders)
#   - audit_YYYY-MM-DD.log: One record per finished batch and per undo
#
# HOW TO USE (from other code):
#   from scenevault.monitoring.logger import get_app_logger
#   logger = get_app_logger("ingest_engine")
#   logger.info("ingest_item_failed", source_path=path, error=msg)
#
# DEPENDENCIES:
#   - structlog on top of Python's built-in logging module
# ============================================================================

import sys
import logging
from pathlib import Path
from typing import Optional, Dict, Any
import structlog
from datetime import datetime


# ============================================================================
# LOGGER CONFIGURATION
# ============================================================================

class LoggerSetup:
    """Initialize and configure structlog for SceneVault"""

    def __init__(self, log_dir: str = "logs"):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._configured = False

    def setup(self) -> None:
        """Configure structlog once per process"""
        if self._configured:
            return

        # Standard logging first. Only loggers that propagate reach this
        # console handler; the app/audit file loggers do not.
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=logging.WARNING,
        )

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.processors.JSONRenderer(ensure_ascii=False),
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._configured = True

    def get_file_logger(self, name: str, log_type: str = "app") -> structlog.BoundLogger:
        """
        Get a logger that also writes to a dated log file.
        log_type: "app" or "audit"

        Each named logger holds exactly one file handler. Asking again for
        the same file reuses it; asking after the log folder changed swaps
        the old handler out. File loggers do not propagate, so their
        records never reach the console handler on stdout.
        """
        self.setup()
        logger = structlog.get_logger(name)

        log_file = (self.log_dir / f"{log_type}_{self._get_date_str()}.log").resolve()
        py_logger = logging.getLogger(name)
        has_handler = False
        for existing in list(py_logger.handlers):
            if not isinstance(existing, logging.FileHandler):
                continue
            if existing.baseFilename == str(log_file):
                has_handler = True
            else:
                py_logger.removeHandler(existing)
                existing.close()
        if not has_handler:
            handler = logging.FileHandler(log_file, encoding="utf-8")
            handler.setFormatter(logging.Formatter("%(message)s"))
            py_logger.addHandler(handler)
        py_logger.setLevel(logging.DEBUG)
        py_logger.propagate = False

        return logger

    @staticmethod
    def _get_date_str() -> str:
        return datetime.now().strftime("%Y-%m-%d")


# ============================================================================
# SINGLETON INSTANCE
# ============================================================================

_logger_setup: Optional[LoggerSetup] = None


def initialize_logging(log_dir: str = "logs") -> LoggerSetup:
    """
    Initialize logging, or point it at a different folder.

    Calling again with the folder already in use returns the existing
    setup unchanged. File loggers fetched afterwards write to the new
    folder.
    """
    global _logger_setup
    if _logger_setup is None or _logger_setup.log_dir.resolve() != Path(log_dir).resolve():
        _logger_setup = LoggerSetup(log_dir)
        _logger_setup.setup()
    return _logger_setup


def get_app_logger(name: str = "app") -> structlog.BoundLogger:
    """Get app logger (writes to app_YYYY-MM-DD.log)"""
    if _logger_setup is None:
        initialize_logging()
    return _logger_setup.get_file_logger(name, "app")


def get_audit_logger(name: str = "audit") -> structlog.BoundLogger:
    """Get audit logger (writes to audit_YYYY-MM-DD.log)"""
    if _logger_setup is None:
        initialize_logging()
    return _logger_setup.get_file_logger(name, "audit")


# ============================================================================
# LOG ENTRY BUILDERS (for consistent structured data)
# ============================================================================

class BatchLogEntry:
    """Builder for the audit record written after every import batch"""

    @staticmethod
    def build(
        transaction_id: str,
        mode: str,
        target_node: str,
        total: int,
        completed: int,
        failed: int,
        details: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return {
            "transaction_id": transaction_id,
            "mode": mode,
            "target_node": target_node,
            "total": total,
            "completed": completed,
            "failed": failed,
            "details": details or {},
            "timestamp": datetime.now().isoformat(),
        }


class UndoLogEntry:
    """Builder for the audit record written after an undo"""

    @staticmethod
    def build(
        transaction_id: str,
        reverted_count: int,
        move_back_failures: int = 0,
    ) -> Dict[str, Any]:
        return {
            "transaction_id": transaction_id,
            "reverted_count": reverted_count,
            "move_back_failures": move_back_failures,
            "timestamp": datetime.now().isoformat(),
        }
