"""Django settings for the secure file vault.

Settings are split into components under ``server.settings.components``
and assembled here in dependency order.
"""

from server.settings.components.common import *  # noqa: F403
from server.settings.components.logging import *  # noqa: F403
from server.settings.components.storages import *  # noqa: F403
from server.settings.components.encryption import *  # noqa: F403
