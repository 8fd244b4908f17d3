"""Discord slash command registration.

Exports register_iirose_commands() which registers the /iirose group
(self cut and welcome subcommands).
"""

from .iirose import register_iirose_commands

__all__ = ["register_iirose_commands"]
