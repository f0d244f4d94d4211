"""Claim submission on behalf of a claimant.

A relayer receives a claim request (hex-encoded proof and public inputs),
then drives the core through: init buffer, upload chunks, finalize and
verify, claim, close buffer. The relayer owns the buffer and earns the fee.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

from murkl.config import ProtocolConfig
from murkl.errors import FeeExceedsMaxError, NullifierAlreadyUsedError
from murkl.primitives.hashing import HASH_SIZE, Hash32
from murkl.protocol.buffer import ProofBuffer, Pubkey
from murkl.protocol.claim import ClaimReceipt, claim
from murkl.protocol.pool import PoolLedger
from murkl.protocol.verifier import Verifier

logger = logging.getLogger(__name__)

_U64_MAX = 2**64 - 1


def chunk_proof(proof: bytes, chunk_size: int) -> list[tuple[int, bytes]]:
    """Split proof into (offset, chunk) pieces of at most chunk_size bytes."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [(offset, proof[offset:offset + chunk_size]) for offset in range(0, len(proof), chunk_size)]


def _parse_hex(j: dict, key: str, errors: list[str], size: Optional[int] = None) -> bytes:
    value = j.get(key)
    if not isinstance(value, str):
        errors.append(f"{key} is required and must be a hex string")
        return b""
    try:
        out = bytes.fromhex(value.removeprefix("0x"))
    except ValueError:
        errors.append(f"{key} is not valid hex")
        return b""
    if size is not None and len(out) != size:
        errors.append(f"{key} must be {size} bytes, got {len(out)}")
    return out


@dataclass(frozen=True)
class ClaimRequest:
    """Validated claim submission."""
    proof: bytes
    commitment: Hash32
    nullifier: Hash32
    merkle_root: Hash32
    leaf_index: int
    recipient: Pubkey
    pool: Pubkey
    fee_bps: int

    @classmethod
    def from_dict(cls, j: dict[str, Any], config: ProtocolConfig = ProtocolConfig()) -> "ClaimRequest":
        """Parse a request body. All problems are reported in one ValueError."""
        errors: list[str] = []
        proof = _parse_hex(j, "proof", errors)
        if proof and len(proof) > config.max_proof_size:
            errors.append(f"proof is {len(proof)} bytes, maximum is {config.max_proof_size}")
        commitment = _parse_hex(j, "commitment", errors, HASH_SIZE)
        nullifier = _parse_hex(j, "nullifier", errors, HASH_SIZE)
        merkle_root = _parse_hex(j, "merkleRoot", errors, HASH_SIZE)
        recipient = _parse_hex(j, "recipientTokenAccount", errors, HASH_SIZE)
        pool = _parse_hex(j, "poolAddress", errors, HASH_SIZE)

        leaf_index = j.get("leafIndex")
        if isinstance(leaf_index, bool) or not isinstance(leaf_index, int) or not 0 <= leaf_index <= _U64_MAX:
            errors.append("leafIndex must be an integer in [0, 2^64)")

        fee_bps = j.get("feeBps", config.default_fee_bps)
        if isinstance(fee_bps, bool) or not isinstance(fee_bps, int) or fee_bps < 0:
            errors.append("feeBps must be a non-negative integer")

        if errors:
            raise ValueError("Invalid claim request: " + "; ".join(errors))
        if fee_bps > config.max_relayer_fee_bps:
            raise FeeExceedsMaxError(f"fee {fee_bps} bps exceeds maximum {config.max_relayer_fee_bps}")

        return cls(proof, commitment, nullifier, merkle_root, leaf_index, recipient, pool, fee_bps)


class Relayer:
    """Submits claims through a proof buffer it owns.

    Attributes:
        ledger: Pool state claims run against
        key: Relayer key; owns the buffers and receives fees
        config: Protocol limits (chunk size, fee cap)
        verifier: Verifier for the buffers (default: transcript verifier)
    """

    def __init__(
        self,
        ledger: PoolLedger,
        key: Pubkey,
        config: Optional[ProtocolConfig] = None,
        verifier: Optional[Verifier] = None,
    ):
        self.ledger = ledger
        self.key = key
        self.config = config if config is not None else ledger.config
        self.verifier = verifier
        self._in_flight: set[tuple[Pubkey, Hash32]] = set()
        self._lock = threading.Lock()

    def submit_claim(self, request: ClaimRequest) -> ClaimReceipt:
        """Upload, verify and claim. The buffer is closed whatever the outcome."""
        with self._lock:
            key = (request.pool, request.nullifier)
            if key in self._in_flight:
                raise NullifierAlreadyUsedError("claim with this nullifier already in flight")
            if self.ledger.is_nullifier_used(request.pool, request.nullifier):
                raise NullifierAlreadyUsedError()
            self._in_flight.add(key)

        try:
            buf = ProofBuffer.init(len(request.proof), self.key, self.config, self.verifier)
            try:
                chunks = chunk_proof(request.proof, self.config.max_chunk_size)
                for offset, chunk in chunks:
                    buf.upload_chunk(offset, chunk, self.key)
                logger.info("Uploaded proof: %d bytes in %d chunks", len(request.proof), len(chunks))
                buf.finalize_and_verify(request.commitment, request.nullifier, request.merkle_root, self.key)
                return claim(
                    self.ledger, request.pool, buf, request.leaf_index,
                    recipient=request.recipient, relayer=self.key, fee_bps=request.fee_bps,
                )
            finally:
                buf.close(self.key)
        finally:
            with self._lock:
                self._in_flight.discard(key)
