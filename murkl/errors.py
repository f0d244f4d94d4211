"""Error kinds raised by the shielded-pool core.

Each kind carries a stable numeric code so that callers on the far side of a
process or network boundary can match on the number rather than the message.
Codes start at 6000, the first custom error code of an on-chain program.
"""

from enum import IntEnum


class ErrorCode(IntEnum):
    """Stable error codes. Never renumber; append new kinds at the end."""
    INVALID_SIZE = 6000
    UNAUTHORIZED = 6001
    ALREADY_FINALIZED = 6002
    OUT_OF_BOUNDS = 6003
    SIZE_MISMATCH = 6004
    MALFORMED_PROOF = 6005
    CONSTRAINT_VIOLATION = 6006
    COMMITMENT_MISMATCH = 6007
    ALREADY_CLAIMED = 6008
    STALE_MERKLE_ROOT = 6009
    NULLIFIER_ALREADY_USED = 6010
    FEE_EXCEEDS_MAX = 6011
    BUFFER_CLOSED = 6012
    PROOF_NOT_FINALIZED = 6013
    POOL_PAUSED = 6014
    DEPOSIT_TOO_SMALL = 6015
    DEPOSIT_NOT_FOUND = 6016
    INSUFFICIENT_FUNDS = 6017


class MurklError(Exception):
    """Base class for every protocol error."""
    code: ErrorCode

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)

    def __str__(self) -> str:
        return f"[{int(self.code)}] {super().__str__()}"


# --- Proof buffer ---

class InvalidSizeError(MurklError):
    """Expected proof size is zero or exceeds the maximum."""
    code = ErrorCode.INVALID_SIZE


class UnauthorizedError(MurklError):
    """Caller is not allowed to perform this operation."""
    code = ErrorCode.UNAUTHORIZED


class AlreadyFinalizedError(MurklError):
    """Proof buffer is already finalized."""
    code = ErrorCode.ALREADY_FINALIZED


class OutOfBoundsError(MurklError):
    """Chunk write falls outside the buffer."""
    code = ErrorCode.OUT_OF_BOUNDS


class SizeMismatchError(MurklError):
    """Uploaded bytes do not cover the expected size."""
    code = ErrorCode.SIZE_MISMATCH


class MalformedProofError(MurklError, ValueError):
    """Proof bytes do not decode into a transcript."""
    code = ErrorCode.MALFORMED_PROOF


class TruncatedProofError(MalformedProofError):
    """Proof ended before a field could be read."""


class TrailingBytesError(MalformedProofError):
    """Proof has bytes left over after the last query."""


class ConstraintViolationError(MurklError):
    """Verifier rejected the proof."""
    code = ErrorCode.CONSTRAINT_VIOLATION


class BufferClosedError(MurklError):
    """Proof buffer has been closed."""
    code = ErrorCode.BUFFER_CLOSED


# --- Pool and claim ---

class CommitmentMismatchError(MurklError):
    """Proven commitment does not match the deposit."""
    code = ErrorCode.COMMITMENT_MISMATCH


class AlreadyClaimedError(MurklError):
    """Deposit has already been claimed."""
    code = ErrorCode.ALREADY_CLAIMED


class StaleMerkleRootError(MurklError):
    """Merkle root is not one the pool held at or after the deposit."""
    code = ErrorCode.STALE_MERKLE_ROOT


class NullifierAlreadyUsedError(MurklError):
    """Nullifier has already been spent in this pool."""
    code = ErrorCode.NULLIFIER_ALREADY_USED


class FeeExceedsMaxError(MurklError):
    """Relayer fee exceeds the pool maximum."""
    code = ErrorCode.FEE_EXCEEDS_MAX


class ProofNotFinalizedError(MurklError):
    """Proof buffer has not been finalized."""
    code = ErrorCode.PROOF_NOT_FINALIZED


class PoolPausedError(MurklError):
    """Pool is paused."""
    code = ErrorCode.POOL_PAUSED


class DepositTooSmallError(MurklError):
    """Deposit amount is below the pool minimum."""
    code = ErrorCode.DEPOSIT_TOO_SMALL


class DepositNotFoundError(MurklError):
    """No deposit exists at this leaf index."""
    code = ErrorCode.DEPOSIT_NOT_FOUND


class InsufficientFundsError(MurklError):
    """Token account balance is too low."""
    code = ErrorCode.INSUFFICIENT_FUNDS
