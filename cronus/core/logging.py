# cronus/core/logging.py
import logging
import os
import sys
import time

# Level given to loggers created by get_logger(); the CLI lowers or raises it.
_default_level: int = logging.INFO

_RESET = '\033[0m'
_TIME_COLOR = '\033[94m'
_TEXT_COLOR = '\033[97m'

_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: '\033[90m',
    logging.INFO: '\033[92m',
    logging.WARNING: '\033[93m',
    logging.ERROR: '\033[91m',
    logging.CRITICAL: '\033[1;91m',
}

# '[scheduler]' is the widest component tag, '[CRITICAL]' the widest level.
_COMPONENT_WIDTH = 13
_LEVEL_WIDTH = 11


class ColoredFormatter(logging.Formatter):
    """One line per record: ``[HH:MM:SS] [component]  [LEVEL]    message``."""

    def __init__(self, use_colors: bool | None = None) -> None:
        super().__init__()
        self.use_colors = 'NO_COLOR' not in os.environ if use_colors is None else use_colors

    def _color(self, code: str, text: str) -> str:
        return f'{code}{text}{_RESET}' if self.use_colors else text

    def format(self, record: logging.LogRecord) -> str:
        stamp = time.strftime('%H:%M:%S', time.localtime(record.created))
        # 'cronus.scheduler' -> 'scheduler'
        component = record.name.rpartition('.')[2]
        level_color = _LEVEL_COLORS.get(record.levelno, _TEXT_COLOR)

        line = ' '.join([
            self._color(_TIME_COLOR, f'[{stamp}]'),
            self._color(_TEXT_COLOR, f'[{component}]'.ljust(_COMPONENT_WIDTH))
            + self._color(level_color, f'[{record.levelname}]'.ljust(_LEVEL_WIDTH))
            + self._color(_TEXT_COLOR, record.getMessage()),
        ])
        if record.exc_info:
            line = f'{line}\n{self.formatException(record.exc_info)}'
        return line


def set_default_level(level: int) -> None:
    """Change the level of new cronus loggers and of those already handed out."""
    global _default_level
    _default_level = level
    for name, existing in logging.root.manager.loggerDict.items():
        if not name.startswith('cronus.') or not isinstance(existing, logging.Logger):
            continue
        existing.setLevel(level)
        for handler in existing.handlers:
            handler.setLevel(level)


def get_logger(component_name: str) -> logging.Logger:
    """Return the ``cronus.<component_name>`` logger, writing to stdout."""
    logger = logging.getLogger(f'cronus.{component_name}')
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter())
    handler.setLevel(_default_level)
    logger.addHandler(handler)
    logger.setLevel(_default_level)
    # Records would otherwise be printed again by root handlers.
    logger.propagate = False
    return logger
