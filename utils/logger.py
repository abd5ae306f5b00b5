import logging
import os
import sys
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List

# Глобальный словарь для отслеживания инициализированных логгеров
_initialized_loggers = set()

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


@dataclass(frozen=True)
class LogEntry:
    severity: str
    timestamp: datetime
    message: str

    def __str__(self):
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"


class MemoryLogHandler(logging.Handler):
    """Keeps the most recent log records in memory for the presentation layer."""

    def __init__(self, capacity: int = 500):
        super().__init__()
        self._entries = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord):
        try:
            self._entries.append(LogEntry(
                severity=record.levelname,
                timestamp=datetime.fromtimestamp(record.created),
                message=record.getMessage(),
            ))
        except Exception:
            self.handleError(record)

    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def clear(self):
        self._entries.clear()


memory_log = MemoryLogHandler()


def setup_logger(name: str = None) -> logging.Logger:
    """Настройка системы логирования без дублирования"""
    if name is None:
        name = __name__

    logger = logging.getLogger(name)

    # Если логгер уже инициализирован - возвращаем его
    if name in _initialized_loggers:
        return logger

    logger.setLevel(os.getenv('LOG_LEVEL', 'INFO').upper())
    logger.propagate = False

    # ✅ ПРОВЕРЯЕМ, ЧТОБЫ НЕ ДОБАВЛЯТЬ ОБРАБОТЧИКИ ПОВТОРНО
    if not logger.handlers:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

        # Файловый handler только если явно задан LOG_FILE
        log_file = os.getenv('LOG_FILE')
        if log_file:
            log_path = Path(log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding='utf-8')
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

        logger.addHandler(memory_log)

    _initialized_loggers.add(name)

    return logger


def clear_logs():
    memory_log.clear()


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}" if address else "N/A"


def short_hash(tx_hash: str) -> str:
    return f"{tx_hash[:6]}...{tx_hash[-4:]}" if tx_hash else "N/A"
