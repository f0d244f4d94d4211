"""Pool state: pools, deposits, nullifiers and token balances.

PoolLedger is the in-memory state store the claim step runs against. All
mutations go through its lock, so a deposit's leaf index, the pool root and
the root history always advance together.

Persisted layouts (little-endian, 8-byte account tag first):

    Pool:          tag | admin | token mint | vault | merkle root |
                   leaf count u64 | min deposit u64 | max fee bps u16 |
                   paused u8 | bump u8
    DepositRecord: tag | pool | commitment | amount u64 | leaf index u64 |
                   claimed u8 | bump u8                         (90 bytes)
"""

import logging
import struct
import threading
from dataclasses import dataclass, replace
from typing import Callable, Optional

from Crypto.Hash import SHA256

from murkl.config import ProtocolConfig
from murkl.errors import (
    DepositNotFoundError,
    DepositTooSmallError,
    FeeExceedsMaxError,
    InsufficientFundsError,
    PoolPausedError,
    UnauthorizedError,
)
from murkl.primitives.hashing import HASH_SIZE, Hash32, keccak256
from murkl.primitives.merkle import HashChainAccumulator, MerkleAccumulator

logger = logging.getLogger(__name__)

# --- Type Aliases ---
Pubkey = bytes

_U64_MAX = 2**64 - 1


def account_tag(name: str) -> bytes:
    """8-byte account discriminator: sha256("account:<name>")[:8]."""
    return SHA256.new(f"account:{name}".encode()).digest()[:8]


def derive_address(*seeds: bytes) -> Pubkey:
    """Deterministic 32-byte address from seeds."""
    return keccak256(*seeds)


def deposit_address(pool: Pubkey, leaf_index: int) -> Pubkey:
    return derive_address(b"deposit", pool, struct.pack('<Q', leaf_index))


def nullifier_address(pool: Pubkey, nullifier: Hash32) -> Pubkey:
    return derive_address(b"nullifier", pool, nullifier)


def _check_key(key: bytes, what: str) -> None:
    if len(key) != HASH_SIZE:
        raise ValueError(f"{what} must be {HASH_SIZE} bytes, got {len(key)}")


# --- Token Balances ---

class TokenLedger:
    """Balances per token account."""

    def __init__(self):
        self._balances: dict[Pubkey, int] = {}
        self._lock = threading.Lock()

    def balance_of(self, account: Pubkey) -> int:
        return self._balances.get(account, 0)

    def mint(self, account: Pubkey, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount must be >= 0, got {amount}")
        with self._lock:
            self._balances[account] = self.balance_of(account) + amount

    def transfer(self, source: Pubkey, dest: Pubkey, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount must be >= 0, got {amount}")
        with self._lock:
            available = self.balance_of(source)
            if available < amount:
                raise InsufficientFundsError(f"balance {available} < {amount}")
            self._balances[source] = available - amount
            self._balances[dest] = self.balance_of(dest) + amount


# --- Records ---

@dataclass
class Pool:
    """Deposit pool for one token mint."""
    admin: Pubkey
    token_mint: Pubkey
    vault: Pubkey
    merkle_root: Hash32 = bytes(HASH_SIZE)
    leaf_count: int = 0
    min_deposit: int = 1
    max_relayer_fee_bps: int = 100
    paused: bool = False
    bump: int = 0

    TAG = account_tag("Pool")
    _TAIL = struct.Struct('<QQHBB')
    SIZE = 8 + 4 * HASH_SIZE + _TAIL.size

    def to_bytes(self) -> bytes:
        return b"".join([
            self.TAG,
            self.admin,
            self.token_mint,
            self.vault,
            self.merkle_root,
            self._TAIL.pack(
                self.leaf_count, self.min_deposit, self.max_relayer_fee_bps,
                1 if self.paused else 0, self.bump,
            ),
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "Pool":
        if len(data) != cls.SIZE:
            raise ValueError(f"Pool account must be {cls.SIZE} bytes, got {len(data)}")
        if data[:8] != cls.TAG:
            raise ValueError("Pool account tag mismatch")
        keys = [bytes(data[8 + i * HASH_SIZE:8 + (i + 1) * HASH_SIZE]) for i in range(4)]
        leaf_count, min_deposit, max_fee, paused, bump = cls._TAIL.unpack_from(data, 8 + 4 * HASH_SIZE)
        return cls(*keys, leaf_count, min_deposit, max_fee, paused != 0, bump)


@dataclass(frozen=True)
class DepositRecord:
    """One deposit. Immutable; a claim replaces it with a claimed copy."""
    pool: Pubkey
    commitment: Hash32
    amount: int
    leaf_index: int
    claimed: bool = False
    bump: int = 0

    TAG = account_tag("DepositRecord")
    SIZE = 90

    def to_bytes(self) -> bytes:
        return b"".join([
            self.TAG,
            self.pool,
            self.commitment,
            struct.pack('<QQBB', self.amount, self.leaf_index, 1 if self.claimed else 0, self.bump),
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "DepositRecord":
        if len(data) != cls.SIZE:
            raise ValueError(f"DepositRecord must be {cls.SIZE} bytes, got {len(data)}")
        if data[:8] != cls.TAG:
            raise ValueError("DepositRecord tag mismatch")
        amount, leaf_index, claimed, bump = struct.unpack_from('<QQBB', data, 72)
        return cls(bytes(data[8:40]), bytes(data[40:72]), amount, leaf_index, claimed != 0, bump)


@dataclass(frozen=True)
class NullifierRecord:
    """Marks a nullifier as spent in a pool."""
    pool: Pubkey
    nullifier: Hash32


# --- Ledger ---

class PoolLedger:
    """Pools, deposits, nullifiers and root history.

    Attributes:
        config: Protocol limits
        tokens: Token balances, including pool vaults
        lock: Serializes every state change; claim() holds it across its checks
    """

    def __init__(
        self,
        config: ProtocolConfig = ProtocolConfig(),
        tokens: Optional[TokenLedger] = None,
        accumulator_factory: Callable[[], MerkleAccumulator] = HashChainAccumulator,
    ):
        self.config = config
        self.tokens = tokens if tokens is not None else TokenLedger()
        self.accumulator_factory = accumulator_factory
        self.lock = threading.RLock()
        self._pools: dict[Pubkey, Pool] = {}
        self._accumulators: dict[Pubkey, MerkleAccumulator] = {}
        self._roots: dict[Pubkey, list[Hash32]] = {}
        # Keyed by derived account address
        self._deposits: dict[Pubkey, DepositRecord] = {}
        self._nullifiers: dict[Pubkey, NullifierRecord] = {}

    # --- Pools ---

    def initialize_pool(
        self,
        admin: Pubkey,
        token_mint: Pubkey,
        min_deposit: int = 1,
        max_relayer_fee_bps: Optional[int] = None,
    ) -> Pubkey:
        """Create the pool for token_mint and return its address."""
        _check_key(admin, "admin")
        _check_key(token_mint, "token_mint")
        if max_relayer_fee_bps is None:
            max_relayer_fee_bps = self.config.max_relayer_fee_bps
        if max_relayer_fee_bps > self.config.max_relayer_fee_bps:
            raise FeeExceedsMaxError(
                f"pool fee cap {max_relayer_fee_bps} exceeds protocol cap {self.config.max_relayer_fee_bps}"
            )
        if not 0 < min_deposit <= _U64_MAX:
            raise ValueError(f"min_deposit must be in [1, 2^64), got {min_deposit}")

        address = derive_address(b"pool", token_mint)
        with self.lock:
            if address in self._pools:
                raise ValueError(f"Pool for mint {token_mint.hex()} already exists")
            accumulator = self.accumulator_factory()
            self._pools[address] = Pool(
                admin=admin,
                token_mint=token_mint,
                vault=derive_address(b"vault", address),
                merkle_root=accumulator.root,
                min_deposit=min_deposit,
                max_relayer_fee_bps=max_relayer_fee_bps,
            )
            self._accumulators[address] = accumulator
            self._roots[address] = []
        logger.info("Pool initialized: address=%s mint=%s", address.hex(), token_mint.hex())
        return address

    def get_pool(self, address: Pubkey) -> Pool:
        """Snapshot of the pool."""
        with self.lock:
            return replace(self._pool(address))

    def _pool(self, address: Pubkey) -> Pool:
        if address not in self._pools:
            raise KeyError(f"Unknown pool {address.hex()}")
        return self._pools[address]

    def set_paused(self, address: Pubkey, caller: Pubkey, paused: bool) -> None:
        """Stop or resume deposits. Admin only."""
        with self.lock:
            pool = self._pool(address)
            if caller != pool.admin:
                raise UnauthorizedError("only the pool admin can pause")
            pool.paused = paused
        logger.info("Pool %s paused=%s", address.hex(), paused)

    # --- Deposits ---

    def deposit(self, address: Pubkey, depositor: Pubkey, commitment: Hash32, amount: int) -> DepositRecord:
        """Lock amount under commitment at the next leaf index."""
        _check_key(commitment, "commitment")
        if not 0 < amount <= _U64_MAX:
            raise ValueError(f"amount must be in [1, 2^64), got {amount}")
        with self.lock:
            pool = self._pool(address)
            if pool.paused:
                raise PoolPausedError()
            if amount < pool.min_deposit:
                raise DepositTooSmallError(f"amount {amount} < minimum {pool.min_deposit}")

            self.tokens.transfer(depositor, pool.vault, amount)

            leaf_index = pool.leaf_count
            pool.merkle_root = self._accumulators[address].insert(commitment)
            pool.leaf_count += 1
            self._roots[address].append(pool.merkle_root)

            record = DepositRecord(pool=address, commitment=commitment, amount=amount, leaf_index=leaf_index)
            self._deposits[deposit_address(address, leaf_index)] = record

        logger.info("Deposit: pool=%s leaf=%d amount=%d", address.hex(), leaf_index, amount)
        return record

    def get_deposit(self, address: Pubkey, leaf_index: int) -> DepositRecord:
        with self.lock:
            if not 0 <= leaf_index <= _U64_MAX:
                raise DepositNotFoundError(f"no deposit at leaf {leaf_index}")
            key = deposit_address(address, leaf_index)
            if key not in self._deposits:
                raise DepositNotFoundError(f"no deposit at leaf {leaf_index}")
            return self._deposits[key]

    def mark_claimed(self, address: Pubkey, leaf_index: int) -> DepositRecord:
        """Swap in the claimed copy of a deposit. Caller holds the lock."""
        record = replace(self.get_deposit(address, leaf_index), claimed=True)
        self._deposits[deposit_address(address, leaf_index)] = record
        return record

    # --- Roots ---

    def root_history(self, address: Pubkey) -> list[Hash32]:
        """Root after each deposit, oldest first."""
        with self.lock:
            self._pool(address)
            return list(self._roots[address])

    def is_known_root(self, address: Pubkey, root: Hash32, since_leaf: int) -> bool:
        """True if the pool held root after inserting leaf since_leaf or later.

        With a bounded history only the last root_history_size roots count.
        """
        with self.lock:
            history = self._roots[address]
            start = since_leaf
            if self.config.root_history_size:
                start = max(start, len(history) - self.config.root_history_size)
            return root in history[start:]

    # --- Nullifiers ---

    def is_nullifier_used(self, address: Pubkey, nullifier: Hash32) -> bool:
        with self.lock:
            return nullifier_address(address, nullifier) in self._nullifiers

    def insert_nullifier(self, address: Pubkey, nullifier: Hash32) -> Optional[NullifierRecord]:
        """Record a nullifier; None if it was already present. Atomic."""
        with self.lock:
            key = nullifier_address(address, nullifier)
            if key in self._nullifiers:
                return None
            record = NullifierRecord(pool=address, nullifier=nullifier)
            self._nullifiers[key] = record
            return record
