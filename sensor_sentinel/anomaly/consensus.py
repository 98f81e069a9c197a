"""
Consensus voting across detectors.

An anomaly is declared only when a strict majority of the detectors that
actually evaluated the reading agree, so no single method decides alone.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .schema import ConsensusResult, Vote


@dataclass
class ConsensusEngine:
    """
    Quorum rule: anomaly iff votes_for >= max(floor, votes_total // 2 + 1).

    Abstaining votes are excluded from votes_total. Flagging a configuration
    with a single enabled detector as degraded is the caller's job.
    """

    min_votes_floor: int = 1

    def quorum(self, votes_total: int) -> int:
        return max(self.min_votes_floor, votes_total // 2 + 1)

    def evaluate(self, votes: Iterable[Vote]) -> ConsensusResult:
        counted = [v for v in votes if not v.abstained]
        voters = [v.detector_name for v in counted if v.is_anomaly]
        votes_total = len(counted)
        votes_for = len(voters)
        quorum = self.quorum(votes_total)

        return ConsensusResult(
            is_anomaly=votes_total > 0 and votes_for >= quorum,
            votes_for=votes_for,
            votes_total=votes_total,
            quorum=quorum,
            agreement_ratio=votes_for / votes_total if votes_total else 0.0,
            voters=voters,
        )
