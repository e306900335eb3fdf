"""Dashboard statistics, cached per user for a minute."""

from __future__ import annotations

from typing import Any

from genie.core.cache import Cache
from genie.core.keys import CacheKeys, TTL
from genie.domain.users import UserStatistics
from genie.services.directory import UserDirectory

STATS_TAG = "stats"
INTERVIEW_GOAL = 15
PRACTICE_GOAL_SECONDS = 20 * 3600
CREDITS_GOAL = 200


def next_ats_target(score: int) -> int:
    if score >= 90:
        return 95
    if score >= 85:
        return 90
    if score >= 80:
        return 85
    if score >= 70:
        return 80
    return 70


def _percent(value: float, goal: float) -> int:
    if goal <= 0:
        return 0
    return min(round(value / goal * 100), 100)


def _signed(value: int, suffix: str = "") -> str:
    return f"{'+' if value >= 0 else ''}{value}{suffix}"


def build_dashboard_stats(stats: UserStatistics) -> dict[str, Any]:
    scores = [s for s in stats.ats_scores if s is not None]
    avg_score = round(sum(scores) / len(scores)) if scores else 0
    last_score = scores[-1] if scores else 0
    ats_trend = avg_score - last_score if last_score > 0 else 0

    weekly = stats.weekly_practice_seconds
    return {
        "totalScore": {
            "value": f"{avg_score}%",
            "trend": _signed(ats_trend, "%"),
            "trendType": "positive" if ats_trend >= 0 else "negative",
            "nextMilestone": f"{next_ats_target(avg_score)}%",
            "progress": avg_score,
        },
        "interviews": {
            "value": str(stats.completed_interviews),
            "trend": f"+{stats.interviews_last_week}",
            "trendType": "positive",
            "nextMilestone": str(stats.completed_interviews + 3),
            "progress": _percent(stats.completed_interviews, INTERVIEW_GOAL),
        },
        "practiceTime": {
            "value": f"{round(stats.total_practice_seconds / 3600)}h",
            "trend": f"{'+' if weekly else ''}{round(weekly / 3600)}h",
            "trendType": "positive" if weekly >= stats.last_week_practice_seconds else "negative",
            "nextMilestone": "20h",
            "progress": _percent(weekly, PRACTICE_GOAL_SECONDS),
        },
        "credits": {
            "value": str(stats.credits),
            "trend": "+0",
            "trendType": "positive",
            "nextMilestone": str(stats.credits + 50),
            "progress": _percent(stats.credits, CREDITS_GOAL),
        },
    }


async def get_dashboard_stats(cache: Cache, directory: UserDirectory, user_id: str) -> dict[str, Any]:
    async def _load() -> dict[str, Any]:
        return build_dashboard_stats(await directory.get_statistics(user_id))

    return await cache.cache(CacheKeys.stats(user_id), _load, ttl=TTL.SHORT, tags=(STATS_TAG,))


__all__ = ["build_dashboard_stats", "get_dashboard_stats", "next_ats_target", "STATS_TAG"]
