"""Primitives - field arithmetic, hashing, Merkle trees and the Fiat-Shamir channel."""

from murkl.primitives.channel import Channel
from murkl.primitives.field import (
    FF,
    M31_PRIME,
    QM31,
    QM31_BYTES,
    evaluate_qm31_poly,
    fold4,
    interpolate_qm31_poly,
    m31_from_le_bytes,
    reduce_m31,
)
from murkl.primitives.hashing import (
    HASH_SIZE,
    LEGACY_UNTAGGED,
    MURKL_V1,
    Hash32,
    HashScheme,
    commitment_for,
    compute_commitment,
    compute_nullifier,
    detect_hash_scheme,
    get_hash_scheme,
    hash_identifier,
    hash_password,
    keccak256,
    nullifier_for,
    verify_commitment,
)
from murkl.primitives.merkle import (
    HashChainAccumulator,
    IncrementalMerkleTree,
    MerkleAccumulator,
    MerkleRoot,
    MerkleTree,
    hash_pair,
    verify_merkle_path,
)

__all__ = [
    # Field
    "FF",
    "M31_PRIME",
    "QM31",
    "QM31_BYTES",
    "reduce_m31",
    "m31_from_le_bytes",
    "fold4",
    "evaluate_qm31_poly",
    "interpolate_qm31_poly",
    # Hashing
    "HASH_SIZE",
    "Hash32",
    "HashScheme",
    "MURKL_V1",
    "LEGACY_UNTAGGED",
    "get_hash_scheme",
    "keccak256",
    "hash_identifier",
    "hash_password",
    "compute_commitment",
    "compute_nullifier",
    "commitment_for",
    "nullifier_for",
    "verify_commitment",
    "detect_hash_scheme",
    # Merkle
    "MerkleTree",
    "MerkleRoot",
    "MerkleAccumulator",
    "HashChainAccumulator",
    "IncrementalMerkleTree",
    "hash_pair",
    "verify_merkle_path",
    # Channel
    "Channel",
]
