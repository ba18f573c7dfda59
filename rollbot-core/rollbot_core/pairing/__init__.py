"""
Admin Pairing
=============
Pairing flow and persisted admin channel.
"""

from .admin_channel import AdminChannelStore
from .service import PairingOutcome, PairingRequest, PairingService, PairingStatus

__all__ = [
    "AdminChannelStore",
    "PairingOutcome",
    "PairingRequest",
    "PairingService",
    "PairingStatus",
]
