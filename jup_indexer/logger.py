"""
Structured logging configuration for the indexer.

Console output is human readable, file output is one JSON object per line.
"""

import logging
import logging.handlers
import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import Settings


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter that outputs structured JSON logs.
    """
    
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }
        
        if hasattr(record, 'extra_data'):
            log_data.update(record.extra_data)
        
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        
        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console formatter. Zero-valued counters from batch records are hidden
    so a quiet batch stays on one short line.
    """
    
    COLOR_CODES = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
        'RESET': '\033[0m'
    }
    
    HIDDEN_KEYS = {'batch_event', 'first_slot', 'last_slot'}
    
    def format(self, record: logging.LogRecord) -> str:
        color = self.COLOR_CODES.get(record.levelname, self.COLOR_CODES['RESET'])
        reset = self.COLOR_CODES['RESET']
        
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        msg = f"{color}[{timestamp}] [{record.levelname:8s}]{reset} {record.getMessage()}"
        
        extra = getattr(record, 'extra_data', None) or {}
        context = [
            f"{k}={v}" for k, v in extra.items()
            if k not in self.HIDDEN_KEYS and v not in (0, False, None)
        ]
        if context:
            msg += f" ({', '.join(context)})"
        
        if record.exc_info:
            msg += f"\n{self.formatException(record.exc_info)}"
        
        return msg


def setup_logging(
    settings: Optional[Settings] = None,
    enable_console: bool = True,
    enable_file: bool = True
):
    """
    Configure logging system with both file and console handlers.
    
    Args:
        settings: Provides LOG_LEVEL and LOG_DIR (env defaults if omitted)
        enable_console: Enable console output
        enable_file: Enable file output
    """
    settings = settings or Settings.from_env()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))
    
    # Remove existing handlers to avoid duplicates on reload
    root_logger.handlers.clear()
    
    if enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(HumanReadableFormatter())
        root_logger.addHandler(console_handler)
    
    if enable_file:
        os.makedirs(settings.LOG_DIR, exist_ok=True)

        main_handler = logging.handlers.RotatingFileHandler(
            os.path.join(settings.LOG_DIR, "indexer.log"),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5
        )
        main_handler.setFormatter(StructuredFormatter())
        main_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(main_handler)
        
        error_handler = logging.handlers.RotatingFileHandler(
            os.path.join(settings.LOG_DIR, "errors.log"),
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3
        )
        error_handler.setFormatter(StructuredFormatter())
        error_handler.setLevel(logging.ERROR)
        root_logger.addHandler(error_handler)
        
    # Quiet noisy libraries
    for noisy in ("solana", "solders", "aiohttp", "urllib3", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


class BatchLogger:
    """
    Specialized logger for processed batches.
    
    One structured BATCH record per batch, for analytics parsing.
    
    Usage:
        batch_logger = BatchLogger()
        batch_logger.log_batch(result, first_slot=250_000_000)
    """
    
    def __init__(self):
        self.logger = logging.getLogger("batches")
    
    def log_batch(self, result, first_slot: Optional[int] = None, dry_run: bool = False):
        """Log batch summary event"""
        stats: Dict[str, Any] = result.stats.to_dict()
        self.logger.info(
            f"BATCH slots {first_slot}..{result.last_slot}: "
            f"{len(result.sol_trades)} sol / {len(result.token_trades)} token trades"
            + (" (dry run)" if dry_run else ""),
            extra={'extra_data': {
                'batch_event': True,
                'first_slot': first_slot,
                'last_slot': result.last_slot,
                'sol_trades': len(result.sol_trades),
                'token_trades': len(result.token_trades),
                'signatures': len(result.jup_signatures),
                'dry_run': dry_run,
                **stats,
            }}
        )
