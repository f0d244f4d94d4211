"""Chunked proof buffer.

A proof is too large for one submission, so its owner uploads it in chunks
into a fixed-size buffer, then finalizes it: the bytes are decoded, verified
against three public inputs, and the inputs are recorded for a later claim.

Lifecycle:

    init -> Receiving --finalize_and_verify--> Finalized
    Receiving / Finalized --close--> Closed

Chunks may arrive in any order and may overlap (later writes win). A coverage
bitmap records which bytes were written; finalize requires every byte of the
expected size to have been written at least once.

Account layout (to_bytes / from_bytes):

    [0..32)    owner
    [32..36)   size (u32)
    [36..40)   expected size (u32)
    [40]       finalized (u8)
    [41..73)   commitment
    [73..105)  nullifier
    [105..137) merkle root
    [137..)    proof bytes
"""

import logging
import struct
import threading
from typing import Optional

import numpy as np

from murkl.config import ProtocolConfig
from murkl.errors import (
    AlreadyFinalizedError,
    BufferClosedError,
    ConstraintViolationError,
    InvalidSizeError,
    OutOfBoundsError,
    SizeMismatchError,
    UnauthorizedError,
)
from murkl.primitives.hashing import HASH_SIZE, Hash32
from murkl.protocol.proof import decode_proof
from murkl.protocol.verifier import PublicInputs, TranscriptVerifier, Verifier

logger = logging.getLogger(__name__)

# --- Type Aliases ---
Pubkey = bytes  # 32-byte account key

OWNER_OFFSET = 0
SIZE_OFFSET = 32
EXPECTED_SIZE_OFFSET = 36
FINALIZED_OFFSET = 40
COMMITMENT_OFFSET = 41
NULLIFIER_OFFSET = 73
MERKLE_ROOT_OFFSET = 105
HEADER_SIZE = 137


def _check_key(key: bytes, what: str) -> None:
    if len(key) != HASH_SIZE:
        raise ValueError(f"{what} must be {HASH_SIZE} bytes, got {len(key)}")


class ProofBuffer:
    """Proof assembly area owned by one uploader.

    Attributes:
        owner: Key allowed to upload, finalize and close
        expected_size: Declared proof length in bytes
        size: Highest byte offset written so far
        finalized: True once the proof has been verified
        closed: True once the owner has reclaimed the buffer
        commitment, nullifier, merkle_root: Public inputs recorded at finalize
        lock: Guards state changes; claim() holds it so the buffer cannot
            be closed under it
    """

    def __init__(self, owner: Pubkey, expected_size: int, verifier: Optional[Verifier] = None):
        _check_key(owner, "owner")
        self.owner = owner
        self.expected_size = expected_size
        self.size = 0
        self.finalized = False
        self.closed = False
        self.commitment: Hash32 = bytes(HASH_SIZE)
        self.nullifier: Hash32 = bytes(HASH_SIZE)
        self.merkle_root: Hash32 = bytes(HASH_SIZE)
        self.verifier: Verifier = verifier if verifier is not None else TranscriptVerifier()
        self._data = np.zeros(expected_size, dtype=np.uint8)
        self._coverage = np.zeros(expected_size, dtype=bool)
        self.lock = threading.Lock()

    @classmethod
    def init(
        cls,
        expected_size: int,
        owner: Pubkey,
        config: ProtocolConfig = ProtocolConfig(),
        verifier: Optional[Verifier] = None,
    ) -> "ProofBuffer":
        """Allocate a zero-filled buffer of exactly expected_size bytes.

        The default verifier checks transcripts with config.verifier.
        """
        if not 0 < expected_size <= config.max_proof_size:
            raise InvalidSizeError(
                f"expected_size {expected_size} must be in [1, {config.max_proof_size}]"
            )
        if verifier is None:
            verifier = TranscriptVerifier(config.verifier)
        buf = cls(owner, expected_size, verifier)
        logger.info("Proof buffer initialized: owner=%s expected_size=%d", owner.hex(), expected_size)
        return buf

    # --- State checks ---

    def _check_open(self) -> None:
        if self.closed:
            raise BufferClosedError()

    def _check_owner(self, caller: Pubkey) -> None:
        if caller != self.owner:
            raise UnauthorizedError(f"caller {caller.hex()} is not the buffer owner")

    def _check_receiving(self, caller: Pubkey) -> None:
        self._check_open()
        self._check_owner(caller)
        if self.finalized:
            raise AlreadyFinalizedError()

    # --- Operations ---

    def upload_chunk(self, offset: int, data: bytes, caller: Pubkey) -> None:
        """Write data at offset. Overlapping writes overwrite earlier bytes."""
        with self.lock:
            self._check_receiving(caller)
            end = offset + len(data)
            if offset < 0 or end > self.expected_size:
                raise OutOfBoundsError(
                    f"chunk [{offset}, {end}) exceeds buffer of {self.expected_size} bytes"
                )
            self._data[offset:end] = np.frombuffer(bytes(data), dtype=np.uint8)
            self._coverage[offset:end] = True
            self.size = max(self.size, end)
            logger.debug("Chunk written: offset=%d len=%d size=%d", offset, len(data), self.size)

    def finalize_and_verify(
        self, commitment: Hash32, nullifier: Hash32, merkle_root: Hash32, caller: Pubkey
    ) -> None:
        """Decode and verify the uploaded proof, then record its public inputs.

        Nothing changes unless every check passes.
        """
        public_inputs = PublicInputs(commitment, nullifier, merkle_root)
        with self.lock:
            self._check_receiving(caller)
            if self.size != self.expected_size:
                raise SizeMismatchError(f"size {self.size} != expected size {self.expected_size}")
            missing = self.missing_ranges()
            if missing:
                raise SizeMismatchError(f"never written: {missing}")

            proof = decode_proof(self.proof_bytes())
            if not self.verifier(proof, public_inputs):
                raise ConstraintViolationError()

            self.commitment = public_inputs.commitment
            self.nullifier = public_inputs.nullifier
            self.merkle_root = public_inputs.merkle_root
            self.finalized = True
            logger.info("Proof buffer finalized: nullifier=%s", nullifier.hex())

    def close(self, caller: Pubkey) -> None:
        """Release the buffer. Allowed in any state, owner only."""
        with self.lock:
            self._check_open()
            self._check_owner(caller)
            self.closed = True
            self._data = np.zeros(0, dtype=np.uint8)
            self._coverage = np.zeros(0, dtype=bool)
            logger.info("Proof buffer closed: owner=%s finalized=%s", self.owner.hex(), self.finalized)

    # --- Queries ---

    @property
    def public_inputs(self) -> Optional[PublicInputs]:
        """Recorded public inputs, or None before finalization."""
        if not self.finalized:
            return None
        return PublicInputs(self.commitment, self.nullifier, self.merkle_root)

    def proof_bytes(self) -> bytes:
        return self._data[:self.size].tobytes()

    def missing_ranges(self) -> list[tuple[int, int]]:
        """Half-open byte ranges of the expected size that were never written."""
        padded = np.concatenate(([False], ~self._coverage, [False]))
        edges = np.flatnonzero(padded[1:] != padded[:-1])
        return [(int(s), int(e)) for s, e in zip(edges[::2], edges[1::2])]

    # --- Account layout ---

    def to_bytes(self) -> bytes:
        self._check_open()
        header = b"".join([
            self.owner,
            struct.pack('<II', self.size, self.expected_size),
            struct.pack('<B', 1 if self.finalized else 0),
            self.commitment,
            self.nullifier,
            self.merkle_root,
        ])
        return header + self._data.tobytes()

    @classmethod
    def from_bytes(cls, data: bytes, verifier: Optional[Verifier] = None) -> "ProofBuffer":
        """Rebuild a buffer from its account bytes.

        The layout has no coverage bitmap; the first `size` bytes count as written.
        """
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise ValueError(f"buffer account needs at least {HEADER_SIZE} bytes, got {len(data)}")
        size, expected_size = struct.unpack_from('<II', data, SIZE_OFFSET)
        if len(data) != HEADER_SIZE + expected_size:
            raise ValueError(
                f"buffer account is {len(data)} bytes, header declares {HEADER_SIZE + expected_size}"
            )
        if size > expected_size:
            raise ValueError(f"size {size} exceeds expected size {expected_size}")

        buf = cls(data[OWNER_OFFSET:SIZE_OFFSET], expected_size, verifier)
        buf.size = size
        buf.finalized = data[FINALIZED_OFFSET] != 0
        buf.commitment = data[COMMITMENT_OFFSET:NULLIFIER_OFFSET]
        buf.nullifier = data[NULLIFIER_OFFSET:MERKLE_ROOT_OFFSET]
        buf.merkle_root = data[MERKLE_ROOT_OFFSET:HEADER_SIZE]
        buf._data[:] = np.frombuffer(data[HEADER_SIZE:], dtype=np.uint8)
        buf._coverage[:size] = True
        return buf
