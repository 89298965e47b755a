"""
Structured Logging for the Study Companion Backend

Console logging with:
- Color-coded levels (only when attached to a terminal)
- Per-component icons (controller, generation, store, chat)
- Key/value payloads rendered under the message
- Section banners around multi-step flows
"""

import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta

    SECTION = '\033[94m'    # Bright Blue
    KEY = '\033[93m'        # Bright Yellow
    TIMESTAMP = '\033[90m'  # Dark Gray


LEVEL_COLORS = {
    'DEBUG': Colors.DEBUG,
    'INFO': Colors.INFO,
    'WARNING': Colors.WARNING,
    'ERROR': Colors.ERROR,
    'CRITICAL': Colors.CRITICAL,
}


class ColoredFormatter(logging.Formatter):
    """Formatter adding a timestamp, a component icon and level colors."""

    # Keyed by the last dotted part of the logger name
    COMPONENT_ICONS = {
        'session_controller': '🧭',
        'generation_client': '🤖',
        'session_store': '💾',
        'main': '🌐',
    }
    LEVEL_ICONS = {
        'WARNING': '⚠️',
        'ERROR': '❌',
        'CRITICAL': '🚨',
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        component = record.name.split('.')[-1]
        icon = self.LEVEL_ICONS.get(record.levelname) or self.COMPONENT_ICONS.get(component, '•')
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S.%f')[:-3]

        if self.use_colors:
            level = f"{LEVEL_COLORS.get(record.levelname, '')}{record.levelname:8s}{Colors.RESET}"
            stamp = f"{Colors.TIMESTAMP}[{timestamp}]{Colors.RESET}"
            name = f"{Colors.BOLD}{record.name}{Colors.RESET}"
        else:
            level = f"{record.levelname:8s}"
            stamp = f"[{timestamp}]"
            name = record.name

        formatted = f"{stamp} {icon} {level} {name} | {record.getMessage()}"
        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"
        return formatted


def format_data(data: Dict[str, Any], indent: int = 2) -> str:
    """Render a payload as indented key: value lines; long lists are truncated."""
    lines = []
    pad = ' ' * indent
    for key, value in data.items():
        if isinstance(value, dict):
            lines.append(f"{pad}{key}:")
            lines.append(format_data(value, indent + 2))
        elif isinstance(value, list) and len(value) > 5:
            lines.append(f"{pad}{key}: {value[:3]} ... ({len(value)} items total)")
        else:
            lines.append(f"{pad}{key}: {value}")
    return "\n".join(lines)


class StructuredLogger:
    """Logger wrapper taking an optional payload dict on every call."""

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(name)
        self._sections: List[str] = []

    def _with_data(self, message: str, data: Optional[Dict[str, Any]]) -> str:
        return f"{message}\n{format_data(data)}" if data else message

    def section(self, title: str, data: Optional[Dict[str, Any]] = None):
        """Open a banner around a multi-step flow."""
        self._sections.append(title)
        self.logger.info(self._with_data(f"{'=' * 20} {title.upper()} {'=' * 20}", data))

    def end_section(self):
        if self._sections:
            title = self._sections.pop()
            self.logger.debug(f"{'-' * 20} end {title.lower()} {'-' * 20}")

    def debug(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.debug(self._with_data(message, data))

    def info(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(message, data))

    def warning(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.warning(self._with_data(message, data))

    def error(self, message: str, error: Optional[Exception] = None, data: Optional[Dict[str, Any]] = None):
        """Log an error, attaching the exception's traceback when given."""
        if error:
            message = f"{message} ({type(error).__name__}: {error})"
        self.logger.error(self._with_data(message, data), exc_info=error)

    def success(self, message: str, data: Optional[Dict[str, Any]] = None):
        self.logger.info(self._with_data(f"✅ {message}", data))

    def event(self, name: str, data: Optional[Dict[str, Any]] = None):
        """Log a controller event received over HTTP."""
        self.logger.info(self._with_data(f"📥 EVENT: {name}", data))


def setup_logging(level: int = logging.INFO, use_colors: bool = True) -> logging.Logger:
    """Install the colored console handler on the root logger."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(use_colors=use_colors))

    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # Suppress noisy loggers
    for noisy in ('asyncio', 'httpx', 'httpcore', 'openai'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root_logger


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name, logging.getLogger(name))
