"""Historical matching: search strategies and the fan-out/merge orchestrator."""

from remit_match.matching.orchestrator import (
    MatchOrchestrator,
    merge_candidates,
    rank_candidates,
)
from remit_match.matching.strategies import (
    CorpusBackend,
    ExternalEmbeddingStrategy,
    FuzzyTextStrategy,
    SearchStrategy,
    VectorSimilarityStrategy,
    build_strategies,
    score_to_confidence,
)

__all__ = [
    "MatchOrchestrator",
    "merge_candidates",
    "rank_candidates",
    "CorpusBackend",
    "SearchStrategy",
    "FuzzyTextStrategy",
    "VectorSimilarityStrategy",
    "ExternalEmbeddingStrategy",
    "build_strategies",
    "score_to_confidence",
]
