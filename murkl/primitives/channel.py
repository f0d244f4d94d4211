"""Fiat-Shamir channel over keccak-256.

The channel state is a 32-byte digest, initially all zeros. Absorbing data
replaces the state with keccak(state || data); every draw first advances the
state with a fixed label so that consecutive draws differ.
"""

import struct

from murkl.primitives.field import QM31, reduce_m31
from murkl.primitives.hashing import HASH_SIZE, Hash32, keccak256

_FELT_LABEL = b"felt"
_QUERY_LABEL = b"query"


class Channel:
    """Deterministic challenge source shared by prover and verifier.

    Attributes:
        state: Current 32-byte channel digest
    """

    def __init__(self, state: Hash32 = bytes(HASH_SIZE)):
        self.state = state

    def mix(self, data: bytes) -> None:
        self.state = keccak256(self.state, data)

    def mix_qm31(self, values: list[QM31]) -> None:
        self.mix(b"".join(v.to_bytes() for v in values))

    def draw_qm31(self) -> QM31:
        """Challenge in QM31: four u32 limbs of the next digest, each reduced mod p."""
        self.state = keccak256(self.state, _FELT_LABEL)
        limbs = struct.unpack_from("<4I", self.state)
        return QM31(*(reduce_m31(x) for x in limbs))

    def draw_index(self, domain_size: int) -> int:
        """Query position in [0, domain_size)."""
        if domain_size <= 0:
            raise ValueError(f"domain_size must be positive, got {domain_size}")
        self.state = keccak256(self.state, _QUERY_LABEL)
        return struct.unpack_from("<I", self.state)[0] % domain_size

    def draw_indices(self, count: int, domain_size: int) -> list[int]:
        return [self.draw_index(domain_size) for _ in range(count)]
