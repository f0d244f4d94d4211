"""Protocol - proof transcripts, verification, proof buffers, pools and claims."""

from murkl.protocol.buffer import HEADER_SIZE, ProofBuffer
from murkl.protocol.claim import ClaimReceipt, claim, relayer_fee
from murkl.protocol.pool import (
    DepositRecord,
    NullifierRecord,
    Pool,
    PoolLedger,
    TokenLedger,
    derive_address,
)
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
from murkl.protocol.prover import ProofBundle, build_transcript, generate_proof
from murkl.protocol.relay import ClaimRequest, Relayer, chunk_proof
from murkl.protocol.verifier import (
    PublicInputs,
    TranscriptVerifier,
    Verifier,
    accept_all,
    stark_verify,
)

__all__ = [
    # Proof transcript
    "StarkProof",
    "QueryProof",
    "FriLayerOpening",
    "encode_proof",
    "decode_proof",
    "proof_to_json",
    "proof_from_json",
    "validate_proof_structure",
    # Verification
    "PublicInputs",
    "Verifier",
    "TranscriptVerifier",
    "accept_all",
    "stark_verify",
    # Prover
    "ProofBundle",
    "build_transcript",
    "generate_proof",
    # Proof buffer
    "ProofBuffer",
    "HEADER_SIZE",
    # Pool
    "Pool",
    "DepositRecord",
    "NullifierRecord",
    "PoolLedger",
    "TokenLedger",
    "derive_address",
    # Claim
    "ClaimReceipt",
    "claim",
    "relayer_fee",
    # Relay
    "ClaimRequest",
    "Relayer",
    "chunk_proof",
]
