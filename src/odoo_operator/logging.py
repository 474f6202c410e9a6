import logging
import logging.config
import string
import sys
from typing import Any, Dict, Union

import colorama
import structlog

from odoo_operator.exception import UsageError

# Keys kopf attaches to its per-object log records
_CONTEXT_KEYS = ('object', 'namespace', 'name', 'component')

_sl_foreign_pre_chain = [
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(utc=True),
]

_sl_processors = [
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(utc=True),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


class _ConsoleRenderer:
    """Renders one line per event: level, message and the kopf object context."""

    _FORMAT = '{log_color}{level_uc:>8s}: {event!s} {context:s}'

    def __init__(self, *, colors: bool) -> None:
        if colors:
            colorama.init()
            self._level_to_color = {
                'critical': colorama.Fore.RED,
                'exception': colorama.Fore.RED,
                'error': colorama.Fore.RED,
                'warn': colorama.Fore.YELLOW,
                'warning': colorama.Fore.YELLOW,
                'info': colorama.Fore.GREEN,
                'debug': colorama.Fore.WHITE,
            }
            self._reset = colorama.Style.RESET_ALL
        else:
            self._level_to_color = {}
            self._reset = ''
        self._vformat = string.Formatter().vformat

    def __call__(self, _, __, event_dict: Dict[str, Any]) -> str:
        level = event_dict.get('level', '')
        event_dict['log_color'] = self._level_to_color.get(level, '')
        event_dict['level_uc'] = level.upper()
        event_dict['context'] = ' '.join(
            f'{key}={event_dict[key]}' for key in _CONTEXT_KEYS if key in event_dict)

        lines = [self._vformat(self._FORMAT, [], event_dict).rstrip()]
        for key in ('stack', 'exception'):
            if event_dict.get(key):
                lines.append(event_dict[key])
        return '\n'.join(lines) + self._reset


def _formatter(processor) -> Dict[str, Any]:
    return {
        '()': structlog.stdlib.ProcessorFormatter,
        'processor': processor,
        'foreign_pre_chain': _sl_foreign_pre_chain,
    }


FORMATTERS = {
    'console-plain': lambda: _formatter(_ConsoleRenderer(colors=False)),
    'console-colored': lambda: _formatter(_ConsoleRenderer(colors=True)),
    'json': lambda: _formatter(structlog.processors.JSONRenderer(default=str)),
}


def init_logging(*,
                 logfile: str = None,
                 console_level: Union[str, int] = 'INFO',
                 console_formatter: str = 'json',
                 logfile_formatter: str = 'json') -> None:
    for formatter in (console_formatter, logfile_formatter):
        if formatter not in FORMATTERS:
            raise UsageError('Event formatter {} is unknown.'.format(formatter))

    handlers: Dict[str, Dict[str, Any]] = {
        'console': {
            'level': console_level,
            'class': 'logging.StreamHandler',
            'formatter': console_formatter,
            'stream': 'ext://sys.stderr',
        },
    }
    if logfile is not None:
        # The log file always gets at least INFO, even when the console is quieter
        level = console_level if isinstance(console_level, int) else logging.getLevelName(console_level)
        handlers['file'] = {
            'level': min(level, logging.INFO),
            'class': 'logging.handlers.WatchedFileHandler',
            'filename': logfile,
            'formatter': logfile_formatter,
        }

    logging.config.dictConfig({
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {name: FORMATTERS[name]() for name in {console_formatter, logfile_formatter}},
        'handlers': handlers,
        'loggers': {
            '': {
                'handlers': list(handlers.keys()),
                'level': 'DEBUG',
                'propagate': True,
            },
        },
    })


def _handle_exception(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return

    structlog.get_logger().error("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))


sys.excepthook = _handle_exception

structlog.configure(
    processors=_sl_processors,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

init_logging()

logger = structlog.get_logger()

# kopf logs every handler invocation and its own housekeeping at INFO
logging.getLogger('kopf.objects').setLevel(logging.INFO)
logging.getLogger('kopf.activities').setLevel(logging.WARN)
logging.getLogger('kopf._core').setLevel(logging.WARN)
logging.getLogger('urllib3').setLevel(logging.WARN)
