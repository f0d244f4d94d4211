"""Keccak-256 hashing and the commitment/nullifier derivations.

All derivations share one primitive: keccak256(tag || payload), where the tag
comes from a versioned HashScheme. Identifier and password hashes reduce the
first four digest bytes (little-endian) into M31; commitments and nullifiers
keep the full 32-byte digest.
"""

import struct
from dataclasses import dataclass
from typing import Optional

from Crypto.Hash import keccak

from murkl.primitives.field import M31_PRIME, m31_from_le_bytes

# --- Type Aliases ---
Hash32 = bytes

HASH_SIZE = 32
_U32_LIMIT = 2**32


def keccak256(*parts: bytes) -> Hash32:
    """Keccak-256 (pre-NIST padding) of the concatenated parts."""
    k = keccak.new(digest_bits=256)
    for part in parts:
        k.update(part)
    return k.digest()


# --- Domain Separation ---

@dataclass(frozen=True)
class HashScheme:
    """Domain tags for each derivation.

    Changing any tag changes every value derived under it, so a scheme is
    identified by its version and never edited in place.
    """
    version: str
    identifier_tag: bytes
    password_tag: bytes
    commitment_tag: bytes
    nullifier_tag: bytes


MURKL_V1 = HashScheme(
    version="v1",
    identifier_tag=b"murkl_identifier_v1",
    password_tag=b"murkl_password_v1",
    commitment_tag=b"murkl_m31_hash_v1",
    nullifier_tag=b"murkl_m31_hash_v1",
)

# Prefix-less commitment/nullifier hashing produced by early clients.
# Only used to recognise commitments created under it.
LEGACY_UNTAGGED = HashScheme(
    version="legacy",
    identifier_tag=b"murkl_identifier_v1",
    password_tag=b"murkl_password_v1",
    commitment_tag=b"",
    nullifier_tag=b"",
)

HASH_SCHEMES = {s.version: s for s in (MURKL_V1, LEGACY_UNTAGGED)}


def get_hash_scheme(version: str) -> HashScheme:
    if version not in HASH_SCHEMES:
        raise ValueError(f"Unknown hash scheme '{version}', expected one of {sorted(HASH_SCHEMES)}")
    return HASH_SCHEMES[version]


def _u32_le(value: int, what: str) -> bytes:
    if not 0 <= value < _U32_LIMIT:
        raise ValueError(f"{what}={value} does not fit in u32")
    return struct.pack("<I", value)


def _m31_le(value: int, what: str) -> bytes:
    if not 0 <= value < M31_PRIME:
        raise ValueError(f"{what}={value} is not a canonical M31 element")
    return struct.pack("<I", value)


# --- Derivations ---

def hash_to_m31(tag: bytes, data: bytes) -> int:
    return m31_from_le_bytes(keccak256(tag, data))


def hash_identifier(identifier: str, scheme: HashScheme = MURKL_V1) -> int:
    """Identifier hash; case-insensitive ("@Alice" == "@alice")."""
    return hash_to_m31(scheme.identifier_tag, identifier.lower().encode("utf-8"))


def hash_password(password: str, scheme: HashScheme = MURKL_V1) -> int:
    """Password hash; this is the secret the claimant proves knowledge of."""
    return hash_to_m31(scheme.password_tag, password.encode("utf-8"))


def compute_commitment(id_hash: int, secret_hash: int, scheme: HashScheme = MURKL_V1) -> Hash32:
    return keccak256(
        scheme.commitment_tag,
        _m31_le(id_hash, "id_hash"),
        _m31_le(secret_hash, "secret_hash"),
    )


def compute_nullifier(secret_hash: int, leaf_index: int, scheme: HashScheme = MURKL_V1) -> Hash32:
    """Nullifier for the deposit at leaf_index.

    Leaf indices are u64 in pool state but only 4 bytes wide here; indices at
    or above 2^32 are rejected rather than truncated.
    """
    return keccak256(
        scheme.nullifier_tag,
        _m31_le(secret_hash, "secret_hash"),
        _u32_le(leaf_index, "leaf_index"),
    )


# --- Convenience ---

def commitment_for(identifier: str, password: str, scheme: HashScheme = MURKL_V1) -> Hash32:
    return compute_commitment(
        hash_identifier(identifier, scheme), hash_password(password, scheme), scheme
    )


def nullifier_for(password: str, leaf_index: int, scheme: HashScheme = MURKL_V1) -> Hash32:
    return compute_nullifier(hash_password(password, scheme), leaf_index, scheme)


def verify_commitment(identifier: str, password: str, commitment: Hash32,
                      scheme: HashScheme = MURKL_V1) -> bool:
    return commitment_for(identifier, password, scheme) == commitment


def detect_hash_scheme(identifier: str, password: str, commitment: Hash32) -> Optional[HashScheme]:
    """Scheme under which commitment was created from these credentials, if any."""
    for scheme in HASH_SCHEMES.values():
        if verify_commitment(identifier, password, commitment, scheme):
            return scheme
    return None
