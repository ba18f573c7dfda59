"""
Access Control
==============
Whitelist/blacklist/admin/pairing policy checks for inbound messages.
"""

from .models import (
    AccessConfig,
    AccessMode,
    AccessOptions,
    AdminRules,
    BlacklistRules,
    PairingRules,
    WhitelistRules,
)
from .policy import AccessPolicy

__all__ = [
    # Models
    "AccessConfig",
    "AccessMode",
    "AccessOptions",
    "AdminRules",
    "BlacklistRules",
    "PairingRules",
    "WhitelistRules",
    # Policy
    "AccessPolicy",
]
