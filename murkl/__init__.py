"""Murkl - shielded-pool core over the Mersenne-31 field.

Depositors lock funds under a 32-byte commitment. A claimant proves knowledge
of the secret behind it with a STARK transcript, uploaded in chunks into a
proof buffer, and reveals a nullifier that stops the deposit being claimed
twice.
"""

from murkl.config import ProtocolConfig, VerifierConfig
from murkl.errors import ErrorCode, MurklError

__version__ = "0.1.0"

__all__ = [
    "ErrorCode",
    "MurklError",
    "ProtocolConfig",
    "VerifierConfig",
]
