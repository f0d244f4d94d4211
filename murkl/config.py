"""Protocol configuration.

Limits and verifier parameters are passed in at construction time rather than
compiled in. Both dataclasses load from a camelCase JSON document:

    {
      "maxProofSize": 8192,
      "maxChunkSize": 900,
      "maxRelayerFeeBps": 100,
      "rootHistorySize": 0,
      "defaultFeeBps": 50,
      "hashScheme": "v1",
      "verifier": {"logDomainSize": 8, "nFriLayers": 3, "nQueries": 4}
    }
"""

import json
from dataclasses import dataclass, field

from murkl.primitives.hashing import HashScheme, get_hash_scheme

BPS_DENOMINATOR = 10_000
MAX_FRI_LAYERS = 255
MAX_QUERIES = 255


@dataclass(frozen=True)
class VerifierConfig:
    """Shape of an acceptable proof transcript.

    Attributes:
        log_domain_size: Log2 of the trace/composition evaluation domain
        n_fri_layers: Number of FRI folding layers (each folds by 4)
        n_queries: Number of query openings
    """
    log_domain_size: int = 8
    n_fri_layers: int = 3
    n_queries: int = 4

    def __post_init__(self):
        if not 1 <= self.n_fri_layers <= MAX_FRI_LAYERS:
            raise ValueError(f"n_fri_layers must be in [1, {MAX_FRI_LAYERS}], got {self.n_fri_layers}")
        if not 1 <= self.n_queries <= MAX_QUERIES:
            raise ValueError(f"n_queries must be in [1, {MAX_QUERIES}], got {self.n_queries}")
        if not 2 * self.n_fri_layers <= self.log_domain_size <= 32:
            raise ValueError(
                f"log_domain_size must be in [{2 * self.n_fri_layers}, 32], got {self.log_domain_size}"
            )

    @property
    def domain_size(self) -> int:
        return 1 << self.log_domain_size

    @property
    def final_domain_size(self) -> int:
        """Evaluations left after all folds; bounds the final polynomial length."""
        return 1 << (self.log_domain_size - 2 * self.n_fri_layers)

    def layer_depth(self, layer: int) -> int:
        """Merkle depth of FRI layer `layer` (each leaf packs 4 evaluations)."""
        return self.log_domain_size - 2 * (layer + 1)

    @classmethod
    def from_dict(cls, j: dict) -> "VerifierConfig":
        defaults = cls()
        return cls(
            log_domain_size=int(j.get("logDomainSize", defaults.log_domain_size)),
            n_fri_layers=int(j.get("nFriLayers", defaults.n_fri_layers)),
            n_queries=int(j.get("nQueries", defaults.n_queries)),
        )


@dataclass(frozen=True)
class ProtocolConfig:
    """Limits for proof buffers, claims and relaying.

    Attributes:
        max_proof_size: Largest accepted proof buffer, in bytes
        max_chunk_size: Largest chunk a relayer puts in one upload
        max_relayer_fee_bps: Ceiling on relayer fees, in basis points
        root_history_size: Number of most recent roots a claim may reference
            (0 keeps every root)
        default_fee_bps: Fee a relayer charges when the request names none
        hash_scheme: Version of the commitment/nullifier domain tags
        verifier: Proof transcript parameters
    """
    max_proof_size: int = 8192
    max_chunk_size: int = 900
    max_relayer_fee_bps: int = 100
    root_history_size: int = 0
    default_fee_bps: int = 50
    hash_scheme: str = "v1"
    verifier: VerifierConfig = field(default_factory=VerifierConfig)

    def __post_init__(self):
        if self.max_proof_size <= 0:
            raise ValueError(f"max_proof_size must be positive, got {self.max_proof_size}")
        if not 0 < self.max_chunk_size <= self.max_proof_size:
            raise ValueError(
                f"max_chunk_size must be in (0, {self.max_proof_size}], got {self.max_chunk_size}"
            )
        if not 0 <= self.max_relayer_fee_bps <= BPS_DENOMINATOR:
            raise ValueError(f"max_relayer_fee_bps must be in [0, {BPS_DENOMINATOR}], got {self.max_relayer_fee_bps}")
        if not 0 <= self.default_fee_bps <= self.max_relayer_fee_bps:
            raise ValueError(
                f"default_fee_bps must be in [0, {self.max_relayer_fee_bps}], got {self.default_fee_bps}"
            )
        if self.root_history_size < 0:
            raise ValueError(f"root_history_size must be >= 0, got {self.root_history_size}")
        get_hash_scheme(self.hash_scheme)

    @property
    def scheme(self) -> HashScheme:
        return get_hash_scheme(self.hash_scheme)

    @classmethod
    def from_dict(cls, j: dict) -> "ProtocolConfig":
        """Build from parsed JSON. Missing keys take their defaults."""
        defaults = cls()
        return cls(
            max_proof_size=int(j.get("maxProofSize", defaults.max_proof_size)),
            max_chunk_size=int(j.get("maxChunkSize", defaults.max_chunk_size)),
            max_relayer_fee_bps=int(j.get("maxRelayerFeeBps", defaults.max_relayer_fee_bps)),
            root_history_size=int(j.get("rootHistorySize", defaults.root_history_size)),
            default_fee_bps=int(j.get("defaultFeeBps", defaults.default_fee_bps)),
            hash_scheme=str(j.get("hashScheme", defaults.hash_scheme)),
            verifier=VerifierConfig.from_dict(j.get("verifier", {})),
        )

    @classmethod
    def from_json(cls, path: str) -> "ProtocolConfig":
        """Load from a JSON file."""
        with open(path) as f:
            j = json.load(f)
        return cls.from_dict(j)

    def to_dict(self) -> dict:
        return {
            "maxProofSize": self.max_proof_size,
            "maxChunkSize": self.max_chunk_size,
            "maxRelayerFeeBps": self.max_relayer_fee_bps,
            "rootHistorySize": self.root_history_size,
            "defaultFeeBps": self.default_fee_bps,
            "hashScheme": self.hash_scheme,
            "verifier": {
                "logDomainSize": self.verifier.log_domain_size,
                "nFriLayers": self.verifier.n_fri_layers,
                "nQueries": self.verifier.n_queries,
            },
        }
