"""Reference transcript builder.

Produces proof bundles whose transcripts pass stark_verify for the same
public inputs. Trace and composition evaluations are derived deterministically
from the claimant's secret; FRI layers are built forward with the channel's
folding challenges and the last layer is interpolated into the final
polynomial.

This builds well-formed, correctly bound transcripts for exercising the
pipeline. It does not arithmetize the commitment relation.
"""

import struct
from dataclasses import dataclass
from typing import Any

from murkl.config import VerifierConfig
from murkl.primitives.channel import Channel
from murkl.primitives.field import QM31, fold4, interpolate_qm31_poly, reduce_m31
from murkl.primitives.hashing import (
    MURKL_V1,
    Hash32,
    HashScheme,
    compute_commitment,
    compute_nullifier,
    hash_identifier,
    hash_password,
    keccak256,
)
from murkl.primitives.merkle import MerkleTree
from murkl.protocol.proof import FOLD_FACTOR, FriLayerOpening, QueryProof, StarkProof, encode_proof
from murkl.protocol.verifier import PublicInputs, fri_leaf_hash


@dataclass(frozen=True)
class ProofBundle:
    """Everything a relayer needs to submit a claim."""
    commitment: Hash32
    nullifier: Hash32
    merkle_root: Hash32
    leaf_index: int
    proof: bytes

    @property
    def public_inputs(self) -> PublicInputs:
        return PublicInputs(self.commitment, self.nullifier, self.merkle_root)

    def to_dict(self) -> dict[str, Any]:
        return {
            "proof": self.proof.hex(),
            "commitment": self.commitment.hex(),
            "nullifier": self.nullifier.hex(),
            "merkleRoot": self.merkle_root.hex(),
            "leafIndex": self.leaf_index,
        }


def _u32(i: int) -> bytes:
    return struct.pack('<I', i)


def _qm31_from_digest(digest: bytes) -> QM31:
    return QM31(*(reduce_m31(x) for x in struct.unpack_from('<4I', digest)))


def build_transcript(
    secret_hash: int,
    public_inputs: PublicInputs,
    config: VerifierConfig = VerifierConfig(),
) -> StarkProof:
    """Build a transcript bound to public_inputs."""
    domain_size = config.domain_size
    proof = StarkProof()

    # Trace and composition evaluation trees
    seed = keccak256(b"murkl_trace_seed", public_inputs.to_bytes(), _u32(secret_hash))
    trace_tree = MerkleTree([keccak256(seed, _u32(i)) for i in range(domain_size)])
    proof.trace_commitment = trace_tree.root
    comp_tree = MerkleTree([
        keccak256(b"murkl_composition", trace_tree.root, _u32(i)) for i in range(domain_size)
    ])
    proof.composition_commitment = comp_tree.root
    proof.trace_oods = _qm31_from_digest(keccak256(b"murkl_trace_oods", trace_tree.root))
    proof.composition_oods = _qm31_from_digest(keccak256(b"murkl_composition_oods", comp_tree.root))

    channel = Channel()
    channel.mix(public_inputs.to_bytes())
    channel.mix(proof.trace_commitment)
    channel.mix(proof.composition_commitment)
    channel.mix_qm31([proof.trace_oods, proof.composition_oods])

    # FRI commit phase: commit to layer L, draw alpha_L, fold into layer L+1
    values = [
        _qm31_from_digest(keccak256(b"murkl_fri", comp_tree.root, _u32(i))) for i in range(domain_size)
    ]
    layer_values: list[list[QM31]] = []
    layer_trees: list[MerkleTree] = []
    for _ in range(config.n_fri_layers):
        groups = [values[j:j + FOLD_FACTOR] for j in range(0, len(values), FOLD_FACTOR)]
        tree = MerkleTree([fri_leaf_hash(g) for g in groups])
        channel.mix(tree.root)
        alpha = channel.draw_qm31()
        layer_values.append(values)
        layer_trees.append(tree)
        proof.fri_layer_commitments.append(tree.root)
        values = [fold4(g, alpha) for g in groups]

    proof.final_poly = interpolate_qm31_poly(values)
    channel.mix_qm31(proof.final_poly)

    # Query phase
    for index in channel.draw_indices(config.n_queries, domain_size):
        query = QueryProof(
            index=index,
            trace_value=trace_tree.leaf(index),
            trace_path=trace_tree.get_path(index),
            composition_value=comp_tree.leaf(index),
            composition_path=comp_tree.get_path(index),
        )
        for layer, tree in enumerate(layer_trees):
            position = index >> (2 * (layer + 1))
            start = position * FOLD_FACTOR
            query.fri_layers.append(FriLayerOpening(
                siblings=layer_values[layer][start:start + FOLD_FACTOR],
                path=tree.get_path(position),
            ))
        proof.queries.append(query)

    return proof


def generate_proof(
    identifier: str,
    password: str,
    leaf_index: int,
    merkle_root: Hash32,
    config: VerifierConfig = VerifierConfig(),
    scheme: HashScheme = MURKL_V1,
) -> ProofBundle:
    """Derive commitment and nullifier from credentials and prove knowledge of them."""
    id_hash = hash_identifier(identifier, scheme)
    secret_hash = hash_password(password, scheme)
    commitment = compute_commitment(id_hash, secret_hash, scheme)
    nullifier = compute_nullifier(secret_hash, leaf_index, scheme)
    public_inputs = PublicInputs(commitment, nullifier, merkle_root)

    proof = build_transcript(secret_hash, public_inputs, config)
    return ProofBundle(
        commitment=commitment,
        nullifier=nullifier,
        merkle_root=merkle_root,
        leaf_index=leaf_index,
        proof=encode_proof(proof),
    )
