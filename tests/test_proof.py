"""Tests for the proof transcript codec and structural validation."""

import random
import struct

import pytest

from murkl.config import VerifierConfig
from murkl.errors import MalformedProofError, TrailingBytesError, TruncatedProofError
from murkl.primitives.field import QM31
from murkl.protocol.proof import (
    FriLayerOpening,
    QueryProof,
    StarkProof,
    decode_proof,
    encode_proof,
    proof_from_json,
    proof_to_json,
    validate_proof_structure,
)
from murkl.protocol.prover import build_transcript
from murkl.protocol.verifier import PublicInputs
from tests.conftest import minimal_transcript


def _h(b: int) -> bytes:
    return bytes([b]) * 32


def _sample_proof() -> StarkProof:
    """Two FRI layers, one final coefficient, two queries; hand-built."""
    def opening(seed: int, depth: int) -> FriLayerOpening:
        return FriLayerOpening(
            siblings=[QM31(seed, k, 0, 0xFFFFFFFF) for k in range(4)],
            path=[_h(seed + j) for j in range(depth)],
        )

    return StarkProof(
        trace_commitment=_h(1),
        composition_commitment=_h(2),
        trace_oods=QM31(1, 2, 3, 4),
        composition_oods=QM31(5, 6, 7, 8),
        fri_layer_commitments=[_h(3), _h(4)],
        final_poly=[QM31(9, 10, 11, 12)],
        queries=[
            QueryProof(
                index=q * 5,
                trace_value=_h(10 + q),
                trace_path=[_h(20 + j) for j in range(4)],
                composition_value=_h(30 + q),
                composition_path=[_h(40 + j) for j in range(4)],
                fri_layers=[opening(50 + q, 2), opening(60 + q, 0)],
            )
            for q in range(2)
        ],
    )


def _random_proof(rng: random.Random) -> StarkProof:
    """Randomly shaped transcript with raw u32 QM31 components."""
    def qm31() -> QM31:
        return QM31(*(rng.randrange(2**32) for _ in range(4)))

    def digest() -> bytes:
        return rng.randbytes(32)

    def path() -> list[bytes]:
        return [digest() for _ in range(rng.randrange(0, 6))]

    n_layers = rng.randrange(0, 5)
    return StarkProof(
        trace_commitment=digest(),
        composition_commitment=digest(),
        trace_oods=qm31(),
        composition_oods=qm31(),
        fri_layer_commitments=[digest() for _ in range(n_layers)],
        final_poly=[qm31() for _ in range(rng.randrange(0, 9))],
        queries=[
            QueryProof(
                index=rng.randrange(2**32),
                trace_value=digest(),
                trace_path=path(),
                composition_value=digest(),
                composition_path=path(),
                fri_layers=[FriLayerOpening([qm31() for _ in range(4)], path()) for _ in range(n_layers)],
            )
            for _ in range(rng.randrange(0, 7))
        ],
    )


class TestBinaryCodec:
    """Encoding and decoding of the binary transcript."""

    def test_roundtrip(self):
        proof = _sample_proof()
        assert decode_proof(encode_proof(proof)) == proof

    def test_roundtrip_generated_transcript(self):
        config = VerifierConfig(log_domain_size=4, n_fri_layers=2, n_queries=3)
        proof = build_transcript(7, PublicInputs(_h(1), _h(2), _h(3)), config)
        data = encode_proof(proof)
        assert encode_proof(decode_proof(data)) == data

    @pytest.mark.parametrize("seed", range(25))
    def test_roundtrip_random_shapes(self, seed):
        proof = _random_proof(random.Random(seed))
        data = encode_proof(proof)
        assert decode_proof(data) == proof
        assert encode_proof(decode_proof(data)) == data

    def test_layout_prefix(self):
        """Commitments, OODS values and counts sit at fixed offsets."""
        data = encode_proof(_sample_proof())
        assert data[0:32] == _h(1)
        assert data[32:64] == _h(2)
        assert struct.unpack_from('<4I', data, 64) == (1, 2, 3, 4)
        assert struct.unpack_from('<4I', data, 80) == (5, 6, 7, 8)
        assert data[96] == 2
        assert data[97:129] == _h(3)
        assert data[161:163] == b"\x01\x00"
        assert data[179] == 2

    def test_minimal_size(self):
        assert len(encode_proof(StarkProof())) == 100
        assert len(minimal_transcript(10)) == 800

    def test_raw_qm31_preserved(self):
        proof = StarkProof(trace_oods=QM31(0xFFFFFFFF, 0x7FFFFFFF, 0, 0))
        assert decode_proof(encode_proof(proof)).trace_oods == QM31(0xFFFFFFFF, 0x7FFFFFFF, 0, 0)


class TestDecodeErrors:
    """Malformed input is reported, never partially parsed."""

    def test_empty(self):
        with pytest.raises(TruncatedProofError):
            decode_proof(b"")

    def test_truncated(self):
        data = encode_proof(_sample_proof())
        for cut in (1, 17, len(data) // 2):
            with pytest.raises(TruncatedProofError):
                decode_proof(data[:-cut])

    def test_trailing(self):
        data = encode_proof(_sample_proof())
        with pytest.raises(TrailingBytesError):
            decode_proof(data + b"\x00")

    def test_errors_are_malformed_proof(self):
        with pytest.raises(MalformedProofError):
            decode_proof(b"\xff" * 800)

    def test_wrong_layer_count(self):
        """A corrupted count shifts every later field and the parse fails."""
        data = bytearray(minimal_transcript(2))
        data[96] = 1
        with pytest.raises(MalformedProofError):
            decode_proof(bytes(data))


class TestEncodeErrors:
    """Values that cannot be represented are rejected."""

    def test_bad_hash_length(self):
        with pytest.raises(ValueError):
            encode_proof(StarkProof(trace_commitment=b"\x00" * 31))

    def test_too_many_layers(self):
        with pytest.raises(ValueError):
            encode_proof(StarkProof(fri_layer_commitments=[_h(0)] * 256))

    def test_index_overflow(self):
        with pytest.raises(ValueError):
            encode_proof(StarkProof(queries=[QueryProof(index=2**32)]))

    def test_layer_mismatch(self):
        proof = _sample_proof()
        proof.queries[0].fri_layers.pop()
        with pytest.raises(ValueError):
            encode_proof(proof)

    def test_sibling_count(self):
        proof = _sample_proof()
        proof.queries[1].fri_layers[0].siblings.append(QM31())
        with pytest.raises(ValueError):
            encode_proof(proof)


class TestProofJson:
    """Hex JSON form."""

    def test_roundtrip(self):
        proof = _sample_proof()
        j = proof_to_json(proof)
        assert j["traceCommitment"] == _h(1).hex()
        assert j["queries"][1]["index"] == 5
        assert proof_from_json(j) == proof


class TestValidateProofStructure:
    """Shape checks against a verifier configuration."""

    def test_sample_matches_config(self):
        config = VerifierConfig(log_domain_size=4, n_fri_layers=2, n_queries=2)
        assert validate_proof_structure(_sample_proof(), config) == []

    def test_reports_every_problem(self):
        config = VerifierConfig(log_domain_size=8, n_fri_layers=3, n_queries=4)
        errors = validate_proof_structure(_sample_proof(), config)
        assert any("FRI layers" in e for e in errors)
        assert any("queries" in e for e in errors)
        assert any("trace path" in e for e in errors)

    def test_index_out_of_domain(self):
        config = VerifierConfig(log_domain_size=4, n_fri_layers=2, n_queries=2)
        proof = _sample_proof()
        proof.queries[0].index = 16
        errors = validate_proof_structure(proof, config)
        assert any("outside domain" in e for e in errors)

    def test_final_poly_too_long(self):
        config = VerifierConfig(log_domain_size=4, n_fri_layers=2, n_queries=2)
        proof = _sample_proof()
        proof.final_poly.append(QM31())
        errors = validate_proof_structure(proof, config)
        assert any("Final polynomial" in e for e in errors)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
