"""Aggregations over a user's pain entries.

Both store implementations fetch entries their own way and hand them to
these functions, so trigger statistics, pattern detection, recommendations
and report summaries behave identically whichever store served the call.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Sequence
from datetime import datetime

from paintrack.storage.models import (
    PainEntry,
    PainReport,
    Pattern,
    Recommendation,
    Resource,
    TriggerStat,
)

# Returned when the user has no trigger data at all.
DEFAULT_TRIGGER_STATS: tuple[TriggerStat, ...] = (
    TriggerStat(name="Poor Sleep", frequency=75),
    TriggerStat(name="Stress", frequency=60),
    TriggerStat(name="Physical Activity", frequency=45),
    TriggerStat(name="Weather Changes", frequency=30),
    TriggerStat(name="Diet", frequency=15),
)

MIN_ENTRIES_FOR_PATTERNS = 5
TIME_PATTERN_THRESHOLD = 0.5
TRIGGER_PATTERN_THRESHOLD = 40
RECOMMENDATION_TRIGGER_THRESHOLD = 30
MAX_RECOMMENDATIONS = 2

MORNING_HOURS = range(5, 12)

RESOURCES: tuple[Resource, ...] = (
    Resource(
        id="res-1",
        title="Understanding Chronic Pain",
        description=(
            "Learn about the mechanisms of chronic pain and how it differs from acute pain."
        ),
        type="article",
        source="National Institute of Health",
        url="https://www.nih.gov/health-information/pain",
        tags=("Education", "Chronic Pain"),
    ),
    Resource(
        id="res-2",
        title="Guided Meditation for Pain Relief",
        description=(
            "A 15-minute guided meditation designed to help manage pain through mindfulness."
        ),
        type="video",
        source="Pain Management Center",
        url="https://www.youtube.com/watch?v=1vx8iUvfyCY",
        tags=("Meditation", "Mindfulness", "Relaxation"),
    ),
    Resource(
        id="res-3",
        title="Gentle Stretching Exercises for Back Pain",
        description=(
            "Safe stretching routines that can help alleviate back pain and improve mobility."
        ),
        type="exercise",
        source="American Physical Therapy Association",
        url="https://www.choosept.com/guide/physical-therapy-guide-low-back-pain",
        tags=("Exercise", "Back Pain", "Stretching"),
    ),
    Resource(
        id="res-4",
        title="Pain and Sleep: Breaking the Cycle",
        description="How pain affects sleep and practical strategies to improve sleep quality.",
        type="article",
        source="Sleep Foundation",
        url="https://www.sleepfoundation.org/physical-health/pain-and-sleep",
        tags=("Sleep", "Health Tips"),
    ),
    Resource(
        id="res-5",
        title="Cognitive Behavioral Therapy for Pain Management",
        description="Introduction to cognitive-behavioral techniques for coping with chronic pain.",
        type="guide",
        source="American Psychological Association",
        url="https://www.apa.org/topics/pain/chronic",
        tags=("CBT", "Mental Health", "Coping Strategies"),
    ),
)

_SLEEP = Recommendation(
    id="rec-sleep",
    title="Sleep Improvement",
    description=(
        "Maintaining a consistent sleep schedule can help reduce pain levels for many conditions."
    ),
    type="tip",
    resource_link="/resources",
)
_RELAXATION = Recommendation(
    id="rec-relaxation",
    title="Relaxation Techniques",
    description="Stress reduction through meditation or deep breathing can help manage pain.",
    type="exercise",
    resource_link="/resources",
)
DEFAULT_RECOMMENDATIONS: tuple[Recommendation, ...] = (_SLEEP, _RELAXATION)

# (trigger name, recommendation) checked in order.
_TRIGGER_RECOMMENDATIONS: tuple[tuple[str, Recommendation], ...] = (
    (
        "Poor Sleep",
        Recommendation(
            id="rec-sleep",
            title="Sleep Improvement",
            description=(
                "Your logs show a correlation between poor sleep and increased pain. "
                "Try maintaining a consistent sleep schedule."
            ),
            type="tip",
            resource_link="/resources",
        ),
    ),
    (
        "Stress",
        Recommendation(
            id="rec-relaxation",
            title="Relaxation Techniques",
            description=(
                "Stress appears to be a trigger for your pain. Consider trying guided "
                "meditation or deep breathing exercises."
            ),
            type="exercise",
            resource_link="/resources",
        ),
    ),
    (
        "Physical Activity",
        Recommendation(
            id="rec-activity",
            title="Activity Pacing",
            description=(
                "Physical activity seems to trigger your pain. Learn about activity pacing "
                "to help manage your energy levels."
            ),
            type="tip",
            resource_link="/resources",
        ),
    ),
)
_GENERAL = Recommendation(
    id="rec-general",
    title="Pain Education",
    description=(
        "Understanding pain mechanisms can help you manage your symptoms better. "
        "Check out our educational resources."
    ),
    type="tip",
    resource_link="/resources",
)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def local_hour(moment: datetime) -> int:
    """Hour of day in the server's local timezone."""
    if moment.tzinfo is None:
        return moment.hour
    return moment.astimezone().hour


def _is_evening(hour: int) -> bool:
    return hour >= 18 or hour < 5


def trigger_stats(entries: Sequence[PainEntry]) -> list[TriggerStat]:
    """Percentage of entries mentioning each trigger, highest first.

    Falls back to :data:`DEFAULT_TRIGGER_STATS` when no entry names a trigger.
    """
    counts: Counter[str] = Counter()
    for entry in entries:
        # A tag repeated within one entry still counts once for that entry.
        counts.update(dict.fromkeys(entry.triggers or (), 1))

    if not counts:
        return list(DEFAULT_TRIGGER_STATS)

    total = len(entries)
    stats = [
        TriggerStat(name=name, frequency=round_half_up(count / total * 100))
        for name, count in counts.items()
    ]
    # Stable sort keeps first-seen order among equal frequencies.
    stats.sort(key=lambda s: s.frequency, reverse=True)
    return stats


def detect_patterns(
    entries: Sequence[PainEntry],
    stats: Sequence[TriggerStat] | None = None,
) -> list[Pattern]:
    """Heuristic time-of-day and trigger patterns; at most two records."""
    total = len(entries)
    if total < MIN_ENTRIES_FOR_PATTERNS:
        return []

    hours = [local_hour(e.date) for e in entries]
    morning = sum(1 for h in hours if h in MORNING_HOURS)
    evening = sum(1 for h in hours if _is_evening(h))

    patterns: list[Pattern] = []
    if morning / total > TIME_PATTERN_THRESHOLD:
        patterns.append(
            Pattern(
                id="pattern-morning",
                title="Morning Pain Pattern",
                description=(
                    "You frequently experience pain in the morning hours. This could be "
                    "related to sleep position or morning stiffness."
                ),
                confidence=round_half_up(morning / total * 100),
                source="Time-based analysis",
            )
        )
    elif evening / total > TIME_PATTERN_THRESHOLD:
        patterns.append(
            Pattern(
                id="pattern-evening",
                title="Evening Pain Pattern",
                description=(
                    "Your pain tends to worsen in the evening hours. This could be related "
                    "to daily fatigue or activity buildup."
                ),
                confidence=round_half_up(evening / total * 100),
                source="Time-based analysis",
            )
        )

    if stats is None:
        stats = trigger_stats(entries)
    # Applies to the default stats too: a user who never names a trigger still
    # gets the Poor Sleep correlation.
    if stats and stats[0].frequency > TRIGGER_PATTERN_THRESHOLD:
        top = stats[0]
        patterns.append(
            Pattern(
                id="pattern-trigger",
                title=f"{top.name} Correlation",
                description=(
                    f"There appears to be a strong correlation between your pain and "
                    f"{top.name.lower()}. Consider tracking this trigger more closely."
                ),
                confidence=top.frequency,
                source="Trigger correlation analysis",
            )
        )
    return patterns


def recommendations(
    entries: Sequence[PainEntry],
    stats: Sequence[TriggerStat] | None = None,
) -> list[Recommendation]:
    """Static advice lightly personalized by trigger frequency."""
    if not entries:
        return list(DEFAULT_RECOMMENDATIONS)

    if stats is None:
        stats = trigger_stats(entries)
    frequencies = {s.name: s.frequency for s in stats}

    picked = [
        rec
        for trigger, rec in _TRIGGER_RECOMMENDATIONS
        if frequencies.get(trigger, 0) > RECOMMENDATION_TRIGGER_THRESHOLD
    ]
    if not picked:
        picked.append(_GENERAL)
    return picked[:MAX_RECOMMENDATIONS]


def pain_report(
    entries: Sequence[PainEntry],
    period_start: datetime,
    period_end: datetime,
) -> PainReport:
    """Summarize the entries that fall inside ``[period_start, period_end]``."""
    in_period = [e for e in entries if period_start <= e.date <= period_end]
    if not in_period:
        return PainReport(
            period_start=period_start,
            period_end=period_end,
            entry_count=0,
            average_intensity=None,
            most_common_location=None,
            most_common_trigger=None,
        )

    locations: Counter[str] = Counter()
    triggers: Counter[str] = Counter()
    for entry in in_period:
        locations.update(entry.locations)
        triggers.update(entry.triggers or ())

    average = round(sum(e.intensity for e in in_period) / len(in_period), 1)
    return PainReport(
        period_start=period_start,
        period_end=period_end,
        entry_count=len(in_period),
        average_intensity=average,
        most_common_location=locations.most_common(1)[0][0] if locations else None,
        most_common_trigger=triggers.most_common(1)[0][0] if triggers else None,
    )
