"""Shared fixtures for the murkl test suite."""

import pytest

from murkl.config import ProtocolConfig
from murkl.primitives.hashing import commitment_for
from murkl.protocol.pool import PoolLedger, TokenLedger
from murkl.protocol.proof import QueryProof, StarkProof, encode_proof
from murkl.protocol.prover import generate_proof

OWNER = b"\x01" * 32
STRANGER = b"\x02" * 32
ADMIN = b"\x03" * 32
MINT = b"\x04" * 32
DEPOSITOR = b"\x05" * 32
RECIPIENT = b"\x06" * 32
RELAYER = b"\x07" * 32

IDENTIFIER = "@alice"
PASSWORD = "testpass123"
DEPOSIT_AMOUNT = 1_000_000


@pytest.fixture
def config() -> ProtocolConfig:
    return ProtocolConfig()


@pytest.fixture
def ledger(config) -> PoolLedger:
    tokens = TokenLedger()
    tokens.mint(DEPOSITOR, 10 * DEPOSIT_AMOUNT)
    return PoolLedger(config, tokens)


@pytest.fixture
def pool(ledger) -> bytes:
    return ledger.initialize_pool(ADMIN, MINT, min_deposit=1000)


@pytest.fixture
def funded_deposit(ledger, pool):
    """Alice's deposit at leaf 0."""
    return ledger.deposit(pool, DEPOSITOR, commitment_for(IDENTIFIER, PASSWORD), DEPOSIT_AMOUNT)


@pytest.fixture
def bundle(ledger, pool, funded_deposit, config):
    """Proof bundle for Alice's deposit against the current pool root."""
    root = ledger.get_pool(pool).merkle_root
    return generate_proof(IDENTIFIER, PASSWORD, funded_deposit.leaf_index, root, config.verifier, config.scheme)


def minimal_transcript(n_queries: int = 10) -> bytes:
    """Shape-only transcript: no FRI layers, empty paths. 100 + 70 * n_queries bytes."""
    proof = StarkProof(queries=[QueryProof(index=i) for i in range(n_queries)])
    return encode_proof(proof)
