"""STARK proof transcript data structures and binary serialization.

Binary layout (little-endian, no padding):

    Section 1: trace commitment          32B
    Section 2: composition commitment    32B
    Section 3: trace OODS value          QM31 (4 x u32)
    Section 4: composition OODS value    QM31
    Section 5: FRI layer commitments     u8 count N, N x 32B
    Section 6: final polynomial          u16 count, count x QM31 (ascending)
    Section 7: queries                   u8 count Q, then per query:
        index u32
        trace value 32B, u8 path length, path x 32B
        composition value 32B, u8 path length, path x 32B
        per FRI layer: 4 x QM31 siblings, u8 path length, path x 32B

The codec is purely structural. It checks lengths, never hashes.
"""

import struct
from dataclasses import dataclass, field
from typing import Any

from murkl.config import VerifierConfig
from murkl.errors import TrailingBytesError, TruncatedProofError
from murkl.primitives.field import QM31, QM31_BYTES
from murkl.primitives.hashing import HASH_SIZE

# --- Type Aliases ---
Hash = bytes  # 32-byte keccak digest

FOLD_FACTOR = 4
_U8_MAX = 0xFF
_U16_MAX = 0xFFFF
_U32_MAX = 0xFFFFFFFF


# --- Proof Data Structures ---

@dataclass
class FriLayerOpening:
    """One query's opening of one FRI layer: the 4 folded-together siblings and their path."""
    siblings: list[QM31] = field(default_factory=list)
    path: list[Hash] = field(default_factory=list)


@dataclass
class QueryProof:
    """Openings of the trace, composition and FRI trees at one query position."""
    index: int = 0
    trace_value: Hash = bytes(HASH_SIZE)
    trace_path: list[Hash] = field(default_factory=list)
    composition_value: Hash = bytes(HASH_SIZE)
    composition_path: list[Hash] = field(default_factory=list)
    fri_layers: list[FriLayerOpening] = field(default_factory=list)


@dataclass
class StarkProof:
    """Complete proof transcript.

    Attributes:
        trace_commitment: Merkle root of the trace evaluations.
        composition_commitment: Merkle root of the composition evaluations.
        trace_oods: Trace evaluation at the out-of-domain point.
        composition_oods: Composition evaluation at the out-of-domain point.
        fri_layer_commitments: Merkle root of each FRI layer, innermost first.
        final_poly: Coefficients (ascending) of the last FRI layer's polynomial.
        queries: Query openings, in the order the channel draws them.
    """
    trace_commitment: Hash = bytes(HASH_SIZE)
    composition_commitment: Hash = bytes(HASH_SIZE)
    trace_oods: QM31 = field(default_factory=QM31)
    composition_oods: QM31 = field(default_factory=QM31)
    fri_layer_commitments: list[Hash] = field(default_factory=list)
    final_poly: list[QM31] = field(default_factory=list)
    queries: list[QueryProof] = field(default_factory=list)


# --- Binary Deserialization ---

class _Reader:
    """Cursor over proof bytes; every read names the field it is reading."""

    def __init__(self, data: bytes):
        self.data = bytes(data)
        self.offset = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def take(self, n: int, what: str) -> bytes:
        if self.remaining < n:
            raise TruncatedProofError(
                f"{what} needs {n} bytes at offset {self.offset}, only {self.remaining} remain"
            )
        out = self.data[self.offset:self.offset + n]
        self.offset += n
        return out

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def u16(self, what: str) -> int:
        return struct.unpack('<H', self.take(2, what))[0]

    def u32(self, what: str) -> int:
        return struct.unpack('<I', self.take(4, what))[0]

    def hash(self, what: str) -> Hash:
        return self.take(HASH_SIZE, what)

    def qm31(self, what: str) -> QM31:
        return QM31.from_bytes(self.take(QM31_BYTES, what))

    def path(self, what: str) -> list[Hash]:
        n = self.u8(f"{what} length")
        return [self.hash(f"{what}[{i}]") for i in range(n)]


def decode_proof(data: bytes) -> StarkProof:
    """Parse a transcript.

    Raises:
        TruncatedProofError: data ends before a field is complete
        TrailingBytesError: data continues past the last query
    """
    r = _Reader(data)
    proof = StarkProof()

    # Sections 1-4: commitments and OODS values
    proof.trace_commitment = r.hash("trace commitment")
    proof.composition_commitment = r.hash("composition commitment")
    proof.trace_oods = r.qm31("trace OODS")
    proof.composition_oods = r.qm31("composition OODS")

    # Section 5: FRI layer commitments
    n_layers = r.u8("FRI layer count")
    proof.fri_layer_commitments = [r.hash(f"FRI layer {i} commitment") for i in range(n_layers)]

    # Section 6: final polynomial
    n_coeffs = r.u16("final polynomial length")
    proof.final_poly = [r.qm31(f"final polynomial[{i}]") for i in range(n_coeffs)]

    # Section 7: queries
    n_queries = r.u8("query count")
    for q in range(n_queries):
        query = QueryProof()
        query.index = r.u32(f"query {q} index")
        query.trace_value = r.hash(f"query {q} trace value")
        query.trace_path = r.path(f"query {q} trace path")
        query.composition_value = r.hash(f"query {q} composition value")
        query.composition_path = r.path(f"query {q} composition path")
        for layer in range(n_layers):
            siblings = [r.qm31(f"query {q} layer {layer} sibling {k}") for k in range(FOLD_FACTOR)]
            path = r.path(f"query {q} layer {layer} path")
            query.fri_layers.append(FriLayerOpening(siblings=siblings, path=path))
        proof.queries.append(query)

    if r.remaining:
        raise TrailingBytesError(f"{r.remaining} bytes left after {n_queries} queries")

    return proof


# --- Binary Serialization ---

def _check_hash(value: bytes, what: str) -> bytes:
    if len(value) != HASH_SIZE:
        raise ValueError(f"{what} must be {HASH_SIZE} bytes, got {len(value)}")
    return value


def _pack_count(n: int, limit: int, fmt: str, what: str) -> bytes:
    if n > limit:
        raise ValueError(f"{what} {n} exceeds {limit}")
    return struct.pack(fmt, n)


def _pack_path(path: list[Hash], what: str) -> bytes:
    out = [_pack_count(len(path), _U8_MAX, '<B', f"{what} length")]
    out.extend(_check_hash(h, f"{what}[{i}]") for i, h in enumerate(path))
    return b"".join(out)


def encode_proof(proof: StarkProof) -> bytes:
    """Serialize a transcript. Inverse of decode_proof.

    Raises ValueError when a value does not fit its field or length prefix.
    """
    n_layers = len(proof.fri_layer_commitments)
    out = [
        _check_hash(proof.trace_commitment, "trace commitment"),
        _check_hash(proof.composition_commitment, "composition commitment"),
        proof.trace_oods.to_bytes(),
        proof.composition_oods.to_bytes(),
        _pack_count(n_layers, _U8_MAX, '<B', "FRI layer count"),
    ]
    out.extend(_check_hash(c, f"FRI layer {i} commitment") for i, c in enumerate(proof.fri_layer_commitments))

    out.append(_pack_count(len(proof.final_poly), _U16_MAX, '<H', "final polynomial length"))
    out.extend(c.to_bytes() for c in proof.final_poly)

    out.append(_pack_count(len(proof.queries), _U8_MAX, '<B', "query count"))
    for q, query in enumerate(proof.queries):
        if not 0 <= query.index <= _U32_MAX:
            raise ValueError(f"query {q} index {query.index} does not fit in u32")
        if len(query.fri_layers) != n_layers:
            raise ValueError(f"query {q} opens {len(query.fri_layers)} FRI layers, proof has {n_layers}")
        out.append(struct.pack('<I', query.index))
        out.append(_check_hash(query.trace_value, f"query {q} trace value"))
        out.append(_pack_path(query.trace_path, f"query {q} trace path"))
        out.append(_check_hash(query.composition_value, f"query {q} composition value"))
        out.append(_pack_path(query.composition_path, f"query {q} composition path"))
        for layer, opening in enumerate(query.fri_layers):
            if len(opening.siblings) != FOLD_FACTOR:
                raise ValueError(
                    f"query {q} layer {layer} has {len(opening.siblings)} siblings, expected {FOLD_FACTOR}"
                )
            out.extend(s.to_bytes() for s in opening.siblings)
            out.append(_pack_path(opening.path, f"query {q} layer {layer} path"))

    return b"".join(out)


# --- JSON Serialization ---

def _qm31_to_json(v: QM31) -> list[int]:
    return list(v.components())


def proof_to_json(proof: StarkProof) -> dict[str, Any]:
    """Hex/integer form of a transcript, for logs and debugging."""
    return {
        "traceCommitment": proof.trace_commitment.hex(),
        "compositionCommitment": proof.composition_commitment.hex(),
        "traceOods": _qm31_to_json(proof.trace_oods),
        "compositionOods": _qm31_to_json(proof.composition_oods),
        "friLayerCommitments": [c.hex() for c in proof.fri_layer_commitments],
        "finalPoly": [_qm31_to_json(c) for c in proof.final_poly],
        "queries": [
            {
                "index": q.index,
                "traceValue": q.trace_value.hex(),
                "tracePath": [h.hex() for h in q.trace_path],
                "compositionValue": q.composition_value.hex(),
                "compositionPath": [h.hex() for h in q.composition_path],
                "friLayers": [
                    {
                        "siblings": [_qm31_to_json(s) for s in layer.siblings],
                        "path": [h.hex() for h in layer.path],
                    }
                    for layer in q.fri_layers
                ],
            }
            for q in proof.queries
        ],
    }


def proof_from_json(j: dict[str, Any]) -> StarkProof:
    """Inverse of proof_to_json."""
    def qm31(v: list[int]) -> QM31:
        return QM31(*v)

    return StarkProof(
        trace_commitment=bytes.fromhex(j["traceCommitment"]),
        composition_commitment=bytes.fromhex(j["compositionCommitment"]),
        trace_oods=qm31(j["traceOods"]),
        composition_oods=qm31(j["compositionOods"]),
        fri_layer_commitments=[bytes.fromhex(c) for c in j["friLayerCommitments"]],
        final_poly=[qm31(c) for c in j["finalPoly"]],
        queries=[
            QueryProof(
                index=q["index"],
                trace_value=bytes.fromhex(q["traceValue"]),
                trace_path=[bytes.fromhex(h) for h in q["tracePath"]],
                composition_value=bytes.fromhex(q["compositionValue"]),
                composition_path=[bytes.fromhex(h) for h in q["compositionPath"]],
                fri_layers=[
                    FriLayerOpening(
                        siblings=[qm31(s) for s in layer["siblings"]],
                        path=[bytes.fromhex(h) for h in layer["path"]],
                    )
                    for layer in q["friLayers"]
                ],
            )
            for q in j["queries"]
        ],
    )


# --- Validation ---

def validate_proof_structure(proof: StarkProof, config: VerifierConfig) -> list[str]:
    """Check that the transcript's shape matches the verifier configuration."""
    errors = []

    n_layers = config.n_fri_layers
    if len(proof.fri_layer_commitments) != n_layers:
        errors.append(f"Expected {n_layers} FRI layers, got {len(proof.fri_layer_commitments)}")

    if not 1 <= len(proof.final_poly) <= config.final_domain_size:
        errors.append(
            f"Final polynomial has {len(proof.final_poly)} coefficients, "
            f"expected 1 to {config.final_domain_size}"
        )

    if len(proof.queries) != config.n_queries:
        errors.append(f"Expected {config.n_queries} queries, got {len(proof.queries)}")

    for q, query in enumerate(proof.queries):
        if query.index >= config.domain_size:
            errors.append(f"Query {q} index {query.index} outside domain of size {config.domain_size}")
        if len(query.trace_path) != config.log_domain_size:
            errors.append(
                f"Query {q} trace path has {len(query.trace_path)} siblings, expected {config.log_domain_size}"
            )
        if len(query.composition_path) != config.log_domain_size:
            errors.append(
                f"Query {q} composition path has {len(query.composition_path)} siblings, "
                f"expected {config.log_domain_size}"
            )
        if len(query.fri_layers) != n_layers:
            errors.append(f"Query {q} opens {len(query.fri_layers)} FRI layers, expected {n_layers}")
            continue
        for layer, opening in enumerate(query.fri_layers):
            depth = config.layer_depth(layer)
            if len(opening.path) != depth:
                errors.append(f"Query {q} layer {layer} path has {len(opening.path)} siblings, expected {depth}")

    return errors
