"""Tests for weekly, daily and contributor aggregation."""

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest


def commit(
    authored_at,
    classification="human",
    login="jane",
    additions=None,
    deletions=None,
    email=None,
    name=None,
):
    return SimpleNamespace(
        authored_at=authored_at,
        classification=classification,
        additions=additions,
        deletions=deletions,
        author_login=login,
        author_email=email,
        author_name=name,
    )


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestWeekBoundaries:
    @pytest.mark.parametrize(
        "moment,label",
        [
            (utc(2024, 12, 30, 9), "2025-W01"),
            (utc(2025, 1, 1), "2025-W01"),
            (utc(2021, 1, 3, 23, 59), "2020-W53"),
            (utc(2025, 6, 16), "2025-W25"),
        ],
    )
    def test_week_label_uses_iso_year(self, moment, label):
        from attribution.services.stats_computation import week_label

        assert week_label(moment) == label

    def test_week_start_is_monday_midnight(self):
        from attribution.services.stats_computation import week_start

        assert week_start(utc(2025, 1, 1, 15, 30)) == utc(2024, 12, 30)
        assert week_start(utc(2024, 12, 30)) == utc(2024, 12, 30)

    def test_naive_datetimes_are_utc(self):
        from attribution.services.stats_computation import day_start

        assert day_start(datetime(2025, 3, 4, 18, 0)) == utc(2025, 3, 4)


class TestWeeklyStats:
    def test_year_boundary_commits_share_a_bucket(self):
        from attribution.services.stats_computation import compute_weekly_stats

        weeks = compute_weekly_stats(
            [commit(utc(2024, 12, 30, 10)), commit(utc(2025, 1, 2, 10), "copilot")]
        )

        assert len(weeks) == 1
        assert weeks[0].week_label == "2025-W01"
        assert weeks[0].week_start == utc(2024, 12, 30)
        assert (weeks[0].human, weeks[0].copilot, weeks[0].total) == (1, 1, 2)

    def test_additions_per_column(self):
        from attribution.services.stats_computation import compute_weekly_stats

        weeks = compute_weekly_stats(
            [
                commit(utc(2025, 3, 3), "openai-codex", additions=40, deletions=4),
                commit(utc(2025, 3, 4), "dependabot", additions=7, deletions=7),
                commit(utc(2025, 3, 5), "human"),
            ]
        )

        week = weeks[0]
        assert week.openai_codex == 1
        assert week.openai_codex_additions == 40
        assert week.dependabot == 1
        assert week.human_additions == 0
        assert week.total_additions == 47
        assert week.total_deletions == 11

    def test_weeks_are_sorted(self):
        from attribution.services.stats_computation import compute_weekly_stats

        weeks = compute_weekly_stats(
            [commit(utc(2025, 3, 20)), commit(utc(2025, 1, 6)), commit(utc(2025, 2, 10))]
        )

        assert [w.week_label for w in weeks] == ["2025-W02", "2025-W07", "2025-W12"]

    def test_no_commits(self):
        from attribution.services.stats_computation import compute_stats

        bundle = compute_stats([])

        assert (bundle.weekly, bundle.daily, bundle.contributors) == ([], [], [])


class TestDailyStats:
    def test_three_way_split(self):
        from attribution.services.stats_computation import compute_daily_stats

        days = compute_daily_stats(
            [
                commit(utc(2025, 3, 3, 1), "human", additions=10),
                commit(utc(2025, 3, 3, 22), "ai-assisted", additions=5),
                commit(utc(2025, 3, 3, 23), "github-actions", additions=1),
                commit(utc(2025, 3, 4, 0), "claude"),
            ]
        )

        assert [d.date for d in days] == [utc(2025, 3, 3), utc(2025, 3, 4)]
        first = days[0]
        assert (first.human, first.ai, first.automation) == (1, 1, 1)
        assert (first.human_additions, first.ai_additions, first.automation_additions) == (10, 5, 1)
        assert days[1].ai == 1


class TestContributorStats:
    def test_majority_classification(self):
        from attribution.services.stats_computation import compute_contributor_stats

        commits = [commit(utc(2025, 1, d), "human") for d in (6, 7, 8)]
        commits += [commit(utc(2025, 1, d), "copilot", additions=3) for d in (9, 10, 11, 12, 13)]

        contributors = compute_contributor_stats(commits)

        assert len(contributors) == 1
        stat = contributors[0]
        assert stat.classification == "copilot"
        assert stat.commit_count == 8
        assert stat.additions == 15
        assert stat.first_commit_at == utc(2025, 1, 6)
        assert stat.last_commit_at == utc(2025, 1, 13)

    def test_tie_goes_to_lexicographically_smallest(self):
        from attribution.services.stats_computation import majority_classification

        assert majority_classification({"human": 2, "copilot": 2}) == "copilot"
        assert majority_classification({}) == "human"

    def test_identity_falls_back_to_email_then_name(self):
        from attribution.services.stats_computation import compute_contributor_stats

        contributors = compute_contributor_stats(
            [
                commit(utc(2025, 1, 6), login=None, email="a@x.io"),
                commit(utc(2025, 1, 7), login=None, email="a@x.io"),
                commit(utc(2025, 1, 8), login=None, name="No Email"),
                commit(utc(2025, 1, 9), login=None),
            ]
        )

        assert [(c.email, c.name, c.commit_count) for c in contributors] == [
            ("a@x.io", None, 2),
            (None, "No Email", 1),
            (None, None, 1),
        ]

    def test_recomputation_is_idempotent(self):
        from attribution.services.stats_computation import compute_stats

        commits = [
            commit(utc(2025, 2, 3), "human", login="jane", additions=3),
            commit(utc(2025, 2, 4), "cursor", login="sam", additions=9),
            commit(utc(2025, 2, 12), "renovate", login="renovate[bot]"),
        ]

        first = compute_stats(commits)
        second = compute_stats(commits)

        for attr in ("weekly", "daily", "contributors"):
            assert [r.model_dump() for r in getattr(first, attr)] == [
                r.model_dump() for r in getattr(second, attr)
            ]
