"""Logging configuration.

All project modules log through ``logging.getLogger(__name__)``,
so everything under the ``server`` namespace is routed here.
"""

from typing import Any, Final

from server.settings.components import config

_LOG_LEVEL: Final = config('DJANGO_LOG_LEVEL', default='INFO')

LOGGING: Final[dict[str, Any]] = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'console': {
            'format': '%(asctime)s %(levelname)s %(name)s %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'console',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'server': {
            'handlers': ['console'],
            'level': _LOG_LEVEL,
            'propagate': False,
        },
        # Request/response logs from boto are only useful when debugging
        'botocore': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },
}
