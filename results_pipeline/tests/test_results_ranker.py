"""
Results Ranker Test Suite.

Deterministic total order, dense ranks, percentile tiers.
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from results_pipeline.orm.submission_result import Tier
from results_pipeline.services.results_ranker import (
    assign_tier, rank_aggregates, tier_distribution
)
from results_pipeline.services.score_aggregator import SubmissionAggregate

BASE_TIME = datetime(2026, 3, 1, 9, 0, 0)


def aggregate(submission_id, weighted, offset=0):
    weighted = Decimal(str(weighted))
    return SubmissionAggregate(
        submission_id=submission_id,
        student_id=submission_id,
        created_at=BASE_TIME + timedelta(minutes=offset),
        raw_score=weighted,
        judge_score=weighted,
        public_vote_score=Decimal("0"),
        weighted_score=weighted,
        judge_count=1,
        public_vote_count=0,
    )


class TestTierThresholds:

    @pytest.mark.parametrize("percentile,tier", [
        ("0.05", Tier.GOLD),
        ("0.10", Tier.GOLD),
        ("0.11", Tier.SILVER),
        ("0.25", Tier.SILVER),
        ("0.26", Tier.BRONZE),
        ("0.40", Tier.BRONZE),
        ("0.41", Tier.PARTICIPANT),
        ("1", Tier.PARTICIPANT),
    ])
    def test_first_matching_threshold_wins(self, percentile, tier):
        assert assign_tier(Decimal(percentile)) == tier


class TestRanking:

    def test_two_submission_cohort(self):
        """With N=2 the winner sits at percentile 0.5 and is a participant."""
        ranked = rank_aggregates([aggregate(2, 50), aggregate(1, 100)])

        assert [r.aggregate.submission_id for r in ranked] == [1, 2]
        assert [r.rank for r in ranked] == [1, 2]
        assert ranked[0].percentile == Decimal("0.5")
        assert ranked[0].tier == Tier.PARTICIPANT

    def test_ranks_are_dense_and_descending(self):
        scores = [71.5, 12, 99.99, 45, 45.01, 0, 88]
        ranked = rank_aggregates([aggregate(i + 1, s, offset=i) for i, s in enumerate(scores)])

        assert [r.rank for r in ranked] == list(range(1, len(scores) + 1))
        weighted = [r.aggregate.weighted_score for r in ranked]
        assert weighted == sorted(weighted, reverse=True)
        assert ranked[0].aggregate.weighted_score == Decimal("99.99")

    def test_ten_submission_tier_distribution(self):
        ranked = rank_aggregates([aggregate(i, 100 - i, offset=i) for i in range(1, 11)])

        assert tier_distribution(ranked) == {
            "gold": 1,
            "silver": 1,
            "bronze": 2,
            "participant": 6,
        }
        assert ranked[0].tier == Tier.GOLD

    @pytest.mark.parametrize("count", [1, 3, 7, 20, 33])
    def test_tier_counts_sum_to_cohort_size(self, count):
        ranked = rank_aggregates([aggregate(i, i % 5, offset=i) for i in range(1, count + 1)])
        assert sum(tier_distribution(ranked).values()) == count

    def test_single_submission_is_participant(self):
        ranked = rank_aggregates([aggregate(1, 10)])
        assert ranked[0].percentile == Decimal("1")
        assert ranked[0].tier == Tier.PARTICIPANT

    def test_empty_input_ranks_nothing(self):
        assert rank_aggregates([]) == []


class TestTieBreak:

    def test_earlier_submission_wins_tie(self):
        ranked = rank_aggregates([
            aggregate(1, 80, offset=5),
            aggregate(2, 80, offset=1),
        ])
        assert [r.aggregate.submission_id for r in ranked] == [2, 1]

    def test_lower_id_wins_full_tie(self):
        ranked = rank_aggregates([
            aggregate(9, 80, offset=0),
            aggregate(4, 80, offset=0),
        ])
        assert [r.aggregate.submission_id for r in ranked] == [4, 9]

    def test_order_independent_of_input_order(self):
        items = [aggregate(i, 50 if i % 2 else 75, offset=i % 3) for i in range(1, 9)]
        forward = [r.aggregate.submission_id for r in rank_aggregates(items)]
        backward = [r.aggregate.submission_id for r in rank_aggregates(list(reversed(items)))]
        assert forward == backward
