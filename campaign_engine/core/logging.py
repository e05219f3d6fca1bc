"""
Logging da aplicacao.

production: uma linha JSON por evento, com os campos de contexto do
pipeline (campaign_id, message_id...) quando passados via extra=.
Outros ambientes: linha colorida para o terminal.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from campaign_engine.core.config import settings

# Atributos de extra= copiados para o JSON
CONTEXT_FIELDS = ("campaign_id", "message_id", "task_name", "error_type", "path")

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "asyncio")

DEV_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            {key: getattr(record, key) for key in CONTEXT_FIELDS if hasattr(record, key)}
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colore so o levelname; o record e restaurado apos formatar."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        color = self.LEVEL_COLORS.get(original, self.RESET)
        record.levelname = f"{color}{original}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


def setup_logging(environment: Optional[str] = None, log_level: Optional[str] = None):
    """Troca os handlers do root logger conforme o ambiente."""
    environment = (environment or settings.ENVIRONMENT).lower()
    level_name = (log_level or settings.LOG_LEVEL).upper()

    if environment == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = ColoredFormatter(fmt=DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
