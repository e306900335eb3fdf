import pytest

from genie.core.keys import CacheKeys
from genie.domain.users import UserStatistics
from genie.services.statistics import build_dashboard_stats, get_dashboard_stats, next_ats_target


@pytest.mark.parametrize(
    "score, target",
    [(0, 70), (69, 70), (70, 80), (80, 85), (85, 90), (90, 95), (100, 95)],
)
def test_next_ats_target(score, target) -> None:
    assert next_ats_target(score) == target


def test_build_dashboard_stats_formats_values() -> None:
    stats = UserStatistics(
        ats_scores=[70, 80, 90],
        completed_interviews=6,
        interviews_last_week=2,
        total_practice_seconds=36_000,
        weekly_practice_seconds=7_200,
        last_week_practice_seconds=3_600,
        credits=100,
    )

    dashboard = build_dashboard_stats(stats)

    assert dashboard["totalScore"] == {
        "value": "80%",
        "trend": "-10%",
        "trendType": "negative",
        "nextMilestone": "85%",
        "progress": 80,
    }
    assert dashboard["interviews"]["value"] == "6"
    assert dashboard["interviews"]["trend"] == "+2"
    assert dashboard["interviews"]["progress"] == 40
    assert dashboard["practiceTime"]["value"] == "10h"
    assert dashboard["practiceTime"]["trend"] == "+2h"
    assert dashboard["practiceTime"]["trendType"] == "positive"
    assert dashboard["credits"]["nextMilestone"] == "150"
    assert dashboard["credits"]["progress"] == 50


def test_build_dashboard_stats_for_new_user() -> None:
    dashboard = build_dashboard_stats(UserStatistics())

    assert dashboard["totalScore"]["value"] == "0%"
    assert dashboard["totalScore"]["trend"] == "+0%"
    assert dashboard["practiceTime"]["trend"] == "0h"
    assert dashboard["interviews"]["progress"] == 0


@pytest.mark.asyncio
async def test_dashboard_stats_are_cached_for_a_minute(cache, directory, clock) -> None:
    directory.statistics["u1"] = UserStatistics(completed_interviews=1)
    first = await get_dashboard_stats(cache, directory, "u1")

    directory.statistics["u1"] = UserStatistics(completed_interviews=2)
    assert await get_dashboard_stats(cache, directory, "u1") == first

    entry = await cache.get_entry(CacheKeys.stats("u1"))
    assert entry.has_tag("stats")

    clock.advance(61)
    assert (await get_dashboard_stats(cache, directory, "u1"))["interviews"]["value"] == "1"
    await cache.refresher.drain(timeout=1)
    assert (await get_dashboard_stats(cache, directory, "u1"))["interviews"]["value"] == "2"
