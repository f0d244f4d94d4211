"""Claim authorization.

A finalized proof buffer carries verified public inputs (commitment,
nullifier, merkle root). A claim reconciles them with pool state, in order:

1. the proven commitment equals the deposit's commitment
2. the deposit is not already claimed
3. the proven root is one the pool held at or after the deposit
4. the nullifier is inserted (atomic check-and-set)
5. the deposit is marked claimed and the amount is paid out, less the
   relayer fee

All steps run under the buffer and ledger locks. The vault balance is checked before the
first mutation so the claim either fully applies or leaves no trace.
"""

import logging
from dataclasses import dataclass

from murkl.config import BPS_DENOMINATOR
from murkl.errors import (
    AlreadyClaimedError,
    CommitmentMismatchError,
    FeeExceedsMaxError,
    InsufficientFundsError,
    NullifierAlreadyUsedError,
    ProofNotFinalizedError,
    StaleMerkleRootError,
)
from murkl.primitives.hashing import Hash32
from murkl.protocol.buffer import ProofBuffer, Pubkey
from murkl.protocol.pool import PoolLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimReceipt:
    """Outcome of a successful claim."""
    pool: Pubkey
    leaf_index: int
    nullifier: Hash32
    recipient: Pubkey
    recipient_amount: int
    relayer: Pubkey
    relayer_fee: int


def relayer_fee(amount: int, fee_bps: int) -> int:
    """Fee in token units, rounded down."""
    return amount * fee_bps // BPS_DENOMINATOR


def claim(
    ledger: PoolLedger,
    pool_address: Pubkey,
    buffer: ProofBuffer,
    leaf_index: int,
    recipient: Pubkey,
    relayer: Pubkey,
    fee_bps: int = 0,
) -> ClaimReceipt:
    """Pay out the deposit at leaf_index to recipient.

    Raises:
        ProofNotFinalizedError: buffer is not finalized, or has been closed
        FeeExceedsMaxError: fee_bps above the pool cap
        DepositNotFoundError: no deposit at leaf_index
        CommitmentMismatchError, AlreadyClaimedError, StaleMerkleRootError,
        NullifierAlreadyUsedError: see module docstring
    """
    if fee_bps < 0:
        raise ValueError(f"fee_bps must be >= 0, got {fee_bps}")

    # Lock order: buffer, then ledger
    with buffer.lock, ledger.lock:
        public_inputs = buffer.public_inputs
        if public_inputs is None or buffer.closed:
            raise ProofNotFinalizedError()

        pool = ledger.get_pool(pool_address)
        if fee_bps > pool.max_relayer_fee_bps:
            raise FeeExceedsMaxError(f"fee {fee_bps} bps exceeds pool maximum {pool.max_relayer_fee_bps}")
        deposit = ledger.get_deposit(pool_address, leaf_index)

        if public_inputs.commitment != deposit.commitment:
            raise CommitmentMismatchError()
        if deposit.claimed:
            raise AlreadyClaimedError()
        if not ledger.is_known_root(pool_address, public_inputs.merkle_root, deposit.leaf_index):
            raise StaleMerkleRootError()
        if ledger.is_nullifier_used(pool_address, public_inputs.nullifier):
            raise NullifierAlreadyUsedError()

        fee = relayer_fee(deposit.amount, fee_bps)
        vault_balance = ledger.tokens.balance_of(pool.vault)
        if vault_balance < deposit.amount:
            raise InsufficientFundsError(f"vault holds {vault_balance}, deposit is {deposit.amount}")

        # Commit point: nothing below can fail
        ledger.insert_nullifier(pool_address, public_inputs.nullifier)
        ledger.mark_claimed(pool_address, leaf_index)
        ledger.tokens.transfer(pool.vault, recipient, deposit.amount - fee)
        if fee:
            ledger.tokens.transfer(pool.vault, relayer, fee)

    logger.info(
        "Claim: pool=%s leaf=%d recipient=%s amount=%d fee=%d",
        pool_address.hex(), leaf_index, recipient.hex(), deposit.amount - fee, fee,
    )
    return ClaimReceipt(
        pool=pool_address,
        leaf_index=leaf_index,
        nullifier=public_inputs.nullifier,
        recipient=recipient,
        recipient_amount=deposit.amount - fee,
        relayer=relayer,
        relayer_fee=fee,
    )
