"""Proof transcript verification.

A verifier is any callable (proof, public_inputs) -> bool. Two are provided:
accept_all, a permissive verifier for exercising the buffer and claim flow,
and TranscriptVerifier, which checks a transcript against its public inputs:

1. Transcript shape matches the configuration.
2. Query indices are the ones the Fiat-Shamir channel draws after absorbing
   the public inputs and every commitment, which binds the proof to them.
3. Trace and composition openings authenticate against their commitments.
4. FRI layer openings authenticate against the layer commitments.
5. Each FRI layer folds into the next, and the last into the final polynomial.

The constraint system itself is not evaluated; OODS values are absorbed into
the channel but not checked against a composition polynomial.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from murkl.config import VerifierConfig
from murkl.primitives.channel import Channel
from murkl.primitives.field import QM31, evaluate_qm31_poly, fold4
from murkl.primitives.hashing import HASH_SIZE, Hash32, keccak256
from murkl.primitives.merkle import verify_merkle_path
from murkl.protocol.proof import FOLD_FACTOR, StarkProof, validate_proof_structure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublicInputs:
    """Values a proof is bound to and a claim is checked against."""
    commitment: Hash32
    nullifier: Hash32
    merkle_root: Hash32

    def __post_init__(self):
        for name in ("commitment", "nullifier", "merkle_root"):
            value = getattr(self, name)
            if len(value) != HASH_SIZE:
                raise ValueError(f"{name} must be {HASH_SIZE} bytes, got {len(value)}")

    def to_bytes(self) -> bytes:
        return self.commitment + self.nullifier + self.merkle_root


Verifier = Callable[[StarkProof, PublicInputs], bool]


def accept_all(proof: StarkProof, public_inputs: PublicInputs) -> bool:
    """Permissive verifier: accepts every well-formed transcript."""
    return True


# --- Fiat-Shamir Reconstruction ---

def fri_leaf_hash(siblings: list[QM31]) -> Hash32:
    """FRI layer leaf: keccak of the four sibling evaluations."""
    return keccak256(b"".join(s.to_bytes() for s in siblings))


def replay_channel(
    proof: StarkProof, public_inputs: PublicInputs, config: VerifierConfig
) -> tuple[list[QM31], list[int]]:
    """Absorb the transcript in order; return the folding challenges and query indices."""
    channel = Channel()
    channel.mix(public_inputs.to_bytes())
    channel.mix(proof.trace_commitment)
    channel.mix(proof.composition_commitment)
    channel.mix_qm31([proof.trace_oods, proof.composition_oods])

    alphas = []
    for commitment in proof.fri_layer_commitments:
        channel.mix(commitment)
        alphas.append(channel.draw_qm31())

    channel.mix_qm31(proof.final_poly)
    indices = channel.draw_indices(config.n_queries, config.domain_size)
    return alphas, indices


# --- Main Verification ---

def stark_verify(proof: StarkProof, public_inputs: PublicInputs, config: VerifierConfig) -> bool:
    """Verify a transcript against its public inputs.

    Every check runs so that all failures are logged; the result is their
    conjunction. A transcript with the wrong shape fails before any hashing.
    """
    errors = validate_proof_structure(proof, config)
    if errors:
        for e in errors:
            logger.warning("Invalid proof structure: %s", e)
        return False

    is_valid = True
    alphas, indices = replay_channel(proof, public_inputs, config)

    # --- Query positions ---
    for q, query in enumerate(proof.queries):
        if query.index != indices[q]:
            logger.warning("Query %d index %d does not match channel index %d", q, query.index, indices[q])
            is_valid = False

    # --- Trace and composition openings ---
    for q, query in enumerate(proof.queries):
        if not verify_merkle_path(query.trace_value, query.trace_path, query.index, proof.trace_commitment):
            logger.warning("Query %d trace Merkle path verification failed", q)
            is_valid = False
        if not verify_merkle_path(
            query.composition_value, query.composition_path, query.index, proof.composition_commitment
        ):
            logger.warning("Query %d composition Merkle path verification failed", q)
            is_valid = False

    # --- FRI layer openings ---
    if not _verify_fri_merkle_paths(proof, config):
        is_valid = False

    # --- FRI folding ---
    if not _verify_fri_folding(proof, alphas, config):
        is_valid = False

    return is_valid


def _verify_fri_merkle_paths(proof: StarkProof, config: VerifierConfig) -> bool:
    is_valid = True
    for q, query in enumerate(proof.queries):
        for layer, opening in enumerate(query.fri_layers):
            position = query.index >> (2 * (layer + 1))
            leaf = fri_leaf_hash(opening.siblings)
            if not verify_merkle_path(leaf, opening.path, position, proof.fri_layer_commitments[layer]):
                logger.warning("Query %d FRI layer %d Merkle path verification failed", q, layer)
                is_valid = False
    return is_valid


def _verify_fri_folding(proof: StarkProof, alphas: list[QM31], config: VerifierConfig) -> bool:
    """Fold each opening with its challenge and compare with the next layer.

    Layer L's opening holds positions 4j..4j+3 where j = index >> 2(L+1).
    Its fold is the value at position j of layer L+1, i.e. slot j & 3 of that
    layer's opening. After the last layer the fold is the final polynomial
    evaluated at x = index >> 2N.
    """
    is_valid = True
    n_layers = config.n_fri_layers
    for q, query in enumerate(proof.queries):
        for layer, opening in enumerate(query.fri_layers):
            folded = fold4(opening.siblings, alphas[layer]).reduced()
            position = query.index >> (2 * (layer + 1))
            if layer + 1 < n_layers:
                expected = query.fri_layers[layer + 1].siblings[position % FOLD_FACTOR].reduced()
            else:
                expected = evaluate_qm31_poly(proof.final_poly, position)
            if folded != expected:
                logger.warning("Query %d FRI layer %d fold does not match next layer", q, layer)
                is_valid = False
    return is_valid


class TranscriptVerifier:
    """Verifier bound to one configuration; usable wherever a Verifier is expected."""

    def __init__(self, config: VerifierConfig = VerifierConfig()):
        self.config = config

    def __call__(self, proof: StarkProof, public_inputs: PublicInputs) -> bool:
        return stark_verify(proof, public_inputs, self.config)
