"""Tests for pool state, deposits and persisted layouts."""

import struct

import pytest

from murkl.config import ProtocolConfig
from murkl.errors import (
    DepositNotFoundError,
    DepositTooSmallError,
    FeeExceedsMaxError,
    InsufficientFundsError,
    PoolPausedError,
    UnauthorizedError,
)
from murkl.primitives.hashing import keccak256
from murkl.primitives.merkle import IncrementalMerkleTree, MerkleTree
from murkl.protocol.pool import (
    DepositRecord,
    Pool,
    PoolLedger,
    TokenLedger,
    account_tag,
    deposit_address,
    derive_address,
    nullifier_address,
)
from tests.conftest import ADMIN, DEPOSIT_AMOUNT, DEPOSITOR, MINT, STRANGER

C1 = b"\x11" * 32
C2 = b"\x22" * 32


class TestTokenLedger:
    def test_transfer(self):
        tokens = TokenLedger()
        tokens.mint(DEPOSITOR, 100)
        tokens.transfer(DEPOSITOR, STRANGER, 40)
        assert tokens.balance_of(DEPOSITOR) == 60
        assert tokens.balance_of(STRANGER) == 40

    def test_insufficient(self):
        tokens = TokenLedger()
        with pytest.raises(InsufficientFundsError):
            tokens.transfer(DEPOSITOR, STRANGER, 1)


class TestPools:
    """Pool creation and admin operations."""

    def test_initialize(self, ledger, pool):
        state = ledger.get_pool(pool)
        assert pool == derive_address(b"pool", MINT)
        assert state.admin == ADMIN
        assert state.vault == derive_address(b"vault", pool)
        assert state.merkle_root == b"\x00" * 32
        assert state.leaf_count == 0

    def test_duplicate_mint(self, ledger, pool):
        with pytest.raises(ValueError):
            ledger.initialize_pool(ADMIN, MINT)

    def test_fee_cap_above_protocol(self, ledger):
        with pytest.raises(FeeExceedsMaxError):
            ledger.initialize_pool(ADMIN, b"\x09" * 32, max_relayer_fee_bps=101)

    def test_pause_admin_only(self, ledger, pool):
        with pytest.raises(UnauthorizedError):
            ledger.set_paused(pool, STRANGER, True)
        ledger.set_paused(pool, ADMIN, True)
        assert ledger.get_pool(pool).paused

    def test_snapshot_is_copy(self, ledger, pool):
        ledger.get_pool(pool).leaf_count = 99
        assert ledger.get_pool(pool).leaf_count == 0


class TestDeposits:
    """Deposits assign leaves and advance the root."""

    def test_leaf_indices_increase(self, ledger, pool):
        d0 = ledger.deposit(pool, DEPOSITOR, C1, 5000)
        d1 = ledger.deposit(pool, DEPOSITOR, C2, 7000)
        assert (d0.leaf_index, d1.leaf_index) == (0, 1)
        assert ledger.get_pool(pool).leaf_count == 2
        assert ledger.get_deposit(pool, 1).amount == 7000

    def test_root_is_hash_chain(self, ledger, pool):
        ledger.deposit(pool, DEPOSITOR, C1, 5000)
        ledger.deposit(pool, DEPOSITOR, C2, 5000)
        r1 = keccak256(b"\x00" * 32, C1)
        r2 = keccak256(r1, C2)
        assert ledger.root_history(pool) == [r1, r2]
        assert ledger.get_pool(pool).merkle_root == r2

    def test_funds_move_to_vault(self, ledger, pool):
        ledger.deposit(pool, DEPOSITOR, C1, 5000)
        vault = ledger.get_pool(pool).vault
        assert ledger.tokens.balance_of(vault) == 5000
        assert ledger.tokens.balance_of(DEPOSITOR) == 10 * DEPOSIT_AMOUNT - 5000

    def test_too_small(self, ledger, pool):
        with pytest.raises(DepositTooSmallError):
            ledger.deposit(pool, DEPOSITOR, C1, 999)

    def test_paused(self, ledger, pool):
        ledger.set_paused(pool, ADMIN, True)
        with pytest.raises(PoolPausedError):
            ledger.deposit(pool, DEPOSITOR, C1, 5000)

    def test_insufficient_funds_leaves_state(self, ledger, pool):
        with pytest.raises(InsufficientFundsError):
            ledger.deposit(pool, STRANGER, C1, 5000)
        assert ledger.get_pool(pool).leaf_count == 0
        assert ledger.root_history(pool) == []

    def test_unknown_deposit(self, ledger, pool):
        with pytest.raises(DepositNotFoundError):
            ledger.get_deposit(pool, 0)
        with pytest.raises(DepositNotFoundError):
            ledger.get_deposit(pool, -1)

    def test_known_root_window(self):
        """A root counts only from the deposit's own insertion onward."""
        tokens = TokenLedger()
        tokens.mint(DEPOSITOR, 100_000)
        ledger = PoolLedger(ProtocolConfig(root_history_size=2), tokens)
        address = ledger.initialize_pool(ADMIN, MINT)
        for c in (C1, C2, b"\x33" * 32):
            ledger.deposit(address, DEPOSITOR, c, 1000)
        r0, r1, r2 = ledger.root_history(address)
        assert ledger.is_known_root(address, r2, 0)
        assert ledger.is_known_root(address, r1, 1)
        assert not ledger.is_known_root(address, r1, 2)
        assert not ledger.is_known_root(address, r0, 0)

    def test_incremental_tree_accumulator(self):
        tokens = TokenLedger()
        tokens.mint(DEPOSITOR, 100_000)
        ledger = PoolLedger(tokens=tokens, accumulator_factory=lambda: IncrementalMerkleTree(depth=2))
        address = ledger.initialize_pool(ADMIN, MINT)
        ledger.deposit(address, DEPOSITOR, C1, 1000)
        ledger.deposit(address, DEPOSITOR, C2, 1000)
        assert ledger.get_pool(address).merkle_root == MerkleTree([C1, C2, b"\x00" * 32, b"\x00" * 32]).root


class TestLayouts:
    """Persisted byte layouts."""

    def test_deposit_record_layout(self):
        record = DepositRecord(pool=b"\xaa" * 32, commitment=C1, amount=DEPOSIT_AMOUNT, leaf_index=7, bump=254)
        data = record.to_bytes()
        assert len(data) == 90
        assert data[0:8] == bytes.fromhex("53e80a1ffb31bda7")
        assert data[8:40] == b"\xaa" * 32
        assert data[40:72] == C1
        assert struct.unpack_from('<QQ', data, 72) == (DEPOSIT_AMOUNT, 7)
        assert data[88] == 0
        assert data[89] == 254

    def test_deposit_record_roundtrip(self):
        record = DepositRecord(pool=b"\xaa" * 32, commitment=C1, amount=5, leaf_index=2**40, claimed=True)
        assert DepositRecord.from_bytes(record.to_bytes()) == record

    def test_deposit_record_tag_checked(self):
        data = bytearray(DepositRecord(b"\xaa" * 32, C1, 5, 0).to_bytes())
        data[0] ^= 1
        with pytest.raises(ValueError):
            DepositRecord.from_bytes(bytes(data))

    def test_deposit_record_immutable(self):
        record = DepositRecord(b"\xaa" * 32, C1, 5, 0)
        with pytest.raises(AttributeError):
            record.amount = 6

    def test_pool_layout(self, ledger, pool):
        ledger.deposit(pool, DEPOSITOR, C1, 5000)
        state = ledger.get_pool(pool)
        data = state.to_bytes()
        assert len(data) == Pool.SIZE == 156
        assert data[:8] == account_tag("Pool")
        assert data[104:136] == state.merkle_root
        assert Pool.from_bytes(data) == state

    def test_deposit_address_seeds(self):
        assert deposit_address(C1, 1) == keccak256(b"deposit", C1, (1).to_bytes(8, "little"))

    def test_nullifier_address_scoped_to_pool(self):
        nullifier = b"\x66" * 32
        assert nullifier_address(C1, nullifier) == keccak256(b"nullifier", C1, nullifier)
        assert nullifier_address(C1, nullifier) != nullifier_address(C2, nullifier)

    def test_nullifier_scoped_to_pool(self, ledger, pool):
        nullifier = b"\x66" * 32
        assert ledger.insert_nullifier(pool, nullifier) is not None
        assert ledger.insert_nullifier(pool, nullifier) is None
        assert not ledger.is_nullifier_used(C1, nullifier)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
