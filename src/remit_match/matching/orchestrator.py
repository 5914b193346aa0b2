"""Match orchestrator for correlating payment note lines with historical postings.

One line's search text is sent to every enabled strategy at once. Results are
merged, deduplicated by historical record id, filtered by the confidence
threshold and ranked. Recall wins over latency: the orchestrator waits for
every strategy to settle and never returns early on the first success.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from ..parsing.line_classifier import should_match_line
from ..schemas.match import BestMatch, LineMatch, MatchCandidate, StrategyKind
from ..schemas.payment_notes import ParsedLine

if TYPE_CHECKING:
    from ..config import MatchingConfig
    from .strategies import SearchStrategy

logger = logging.getLogger(__name__)


def merge_candidates(candidate_lists: list[list[MatchCandidate]]) -> list[MatchCandidate]:
    """
    Union candidate lists, keeping one candidate per external id.

    Lists are consumed in order. A later duplicate replaces an earlier one
    only if its confidence is strictly higher; the id keeps its first-seen
    position either way.
    """
    merged: dict[Any, MatchCandidate] = {}
    for candidates in candidate_lists:
        for candidate in candidates:
            existing = merged.get(candidate.external_id)
            if existing is None or candidate.confidence > existing.confidence:
                merged[candidate.external_id] = candidate
    return list(merged.values())


def rank_candidates(
    candidates: list[MatchCandidate],
    min_confidence: float,
) -> list[MatchCandidate]:
    """Drop candidates below min_confidence and sort descending (stable)."""
    kept = [c for c in candidates if c.confidence >= min_confidence]
    kept.sort(key=lambda c: c.confidence, reverse=True)
    return kept


class MatchOrchestrator:
    """Fan-out/merge engine over a list of search strategies.

    The orchestrator holds no mutable state between calls; concurrent calls
    to search_line() are independent.
    """

    DEFAULT_MIN_CONFIDENCE = 85.0
    DEFAULT_MIN_SEARCH_LENGTH = 5
    DEFAULT_TOP_N = 3

    def __init__(
        self,
        strategies: list[SearchStrategy],
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
        min_search_length: int = DEFAULT_MIN_SEARCH_LENGTH,
        top_n: int = DEFAULT_TOP_N,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            strategies: Search strategies in declaration order. The order
                decides which candidate survives a confidence tie.
            min_confidence: Candidates below this confidence are dropped.
            min_search_length: Shorter (trimmed) search text is not searched.
            top_n: Candidates per line handed on for review.
        """
        self.strategies = list(strategies)
        self.min_confidence = min_confidence
        self.min_search_length = min_search_length
        self.top_n = top_n

    @classmethod
    def from_config(
        cls,
        strategies: list[SearchStrategy],
        config: MatchingConfig,
    ) -> MatchOrchestrator:
        """Build an orchestrator from the matching config section."""
        enabled = set(config.enabled_kinds())
        return cls(
            strategies=[s for s in strategies if s.kind in enabled],
            min_confidence=config.min_confidence,
            min_search_length=config.min_search_length,
            top_n=config.persist_top_n,
        )

    def search_line(self, search_text: str | None) -> list[MatchCandidate]:
        """Find historical candidates for one line's search text.

        Args:
            search_text: Search text of a parsed line (may be None).

        Returns:
            Unique candidates with confidence >= min_confidence, sorted by
            confidence descending. Empty if the text is missing or too short.
        """
        if not search_text or len(search_text.strip()) < self.min_search_length:
            logger.debug("Skipping search - text too short (%d chars)", len(search_text or ""))
            return []

        if not self.strategies:
            logger.warning("No search strategies configured")
            return []

        results = self._run_strategies(search_text)
        merged = merge_candidates(results)
        ranked = rank_candidates(merged, self.min_confidence)

        logger.info(
            "Line search: %s -> %d unique, %d at or above %.0f%%",
            ", ".join(f"{s.name}={len(r)}" for s, r in zip(self.strategies, results)),
            len(merged),
            len(ranked),
            self.min_confidence,
        )
        if ranked:
            logger.debug(
                "Top match %r (%.1f%%, %s)",
                ranked[0].external_id,
                ranked[0].confidence,
                ranked[0].strategy.value,
            )

        return ranked

    def compare(self, search_text: str | None) -> dict[StrategyKind, list[MatchCandidate]]:
        """Unmerged, unfiltered results per strategy (diagnostics).

        Args:
            search_text: Search text of a parsed line.

        Returns:
            Mapping of strategy kind to its raw candidates; failed strategies
            contribute an empty list. Strategies sharing a kind are
            concatenated in declaration order.
        """
        compared: dict[StrategyKind, list[MatchCandidate]] = {s.kind: [] for s in self.strategies}
        if not search_text or len(search_text.strip()) < self.min_search_length:
            return compared
        for strategy, candidates in zip(self.strategies, self._run_strategies(search_text)):
            compared[strategy.kind].extend(candidates)
        return compared

    def match_line(self, line: ParsedLine) -> LineMatch:
        """Match one parsed line; non-matchable lines get no candidates."""
        if not should_match_line(line, self.min_search_length):
            return LineMatch(line=line, top_n=self.top_n)
        candidates = self.search_line(line.search_text)
        return LineMatch(line=line, candidates=tuple(candidates), top_n=self.top_n)

    def match_lines(
        self,
        lines: list[ParsedLine],
    ) -> tuple[list[LineMatch], BestMatch | None]:
        """Match every line of a statement, one line at a time.

        Args:
            lines: Parsed lines of one statement.

        Returns:
            Tuple of (per-line matches in input order, statement-level best
            match). The best match is the highest rank-1 candidate; on a tie
            the earlier line wins.
        """
        line_matches: list[LineMatch] = []
        best: BestMatch | None = None

        for line in lines:
            line_match = self.match_line(line)
            line_matches.append(line_match)

            top = line_match.best
            if top is not None and (best is None or top.confidence > best.candidate.confidence):
                best = BestMatch(
                    line_number=line.line_number,
                    line_text=line.raw_text,
                    candidate=top,
                )

        matched = sum(1 for m in line_matches if m.matched)
        logger.info("Matched %d of %d lines", matched, len(line_matches))
        return line_matches, best

    def _run_strategies(self, search_text: str) -> list[list[MatchCandidate]]:
        """Run all strategies concurrently and wait for every one to settle.

        Returns one candidate list per strategy, in strategy order.
        """
        results: list[list[MatchCandidate]] = []

        with ThreadPoolExecutor(
            max_workers=len(self.strategies),
            thread_name_prefix="match-strategy",
        ) as executor:
            futures = [
                (strategy, executor.submit(strategy.search, search_text))
                for strategy in self.strategies
            ]
            for strategy, future in futures:
                try:
                    results.append(future.result())
                except Exception as e:
                    logger.warning("%s search failed: %s", strategy.name, e)
                    results.append([])

        return results
