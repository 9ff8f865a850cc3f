"""
Achievement rules evaluated after every accepted day completion.

Each rule is a pure predicate over the post-update record and the parent
challenge's duration. A tag unlocks at most once per record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Tuple

from ecotrac.models.progress import ProgressRecord

FIRST_STEP = "First Step"
WEEK_WARRIOR = "Week Warrior"
SEVEN_DAY_STREAK = "7-Day Streak"
CHALLENGE_MASTER = "Challenge Master"


@dataclass(frozen=True)
class AchievementRule:
    tag: str
    description: str
    predicate: Callable[[ProgressRecord, int], bool]

    def qualifies(self, record: ProgressRecord, duration: int) -> bool:
        return self.predicate(record, duration)


ACHIEVEMENT_RULES: Tuple[AchievementRule, ...] = (
    AchievementRule(
        tag=FIRST_STEP,
        description="Complete your first day.",
        predicate=lambda record, duration: record.total_days_completed == 1,
    ),
    AchievementRule(
        tag=WEEK_WARRIOR,
        description="Complete seven days in total.",
        predicate=lambda record, duration: record.total_days_completed == 7,
    ),
    AchievementRule(
        tag=SEVEN_DAY_STREAK,
        description="Complete seven consecutive days.",
        predicate=lambda record, duration: record.current_streak == 7,
    ),
    AchievementRule(
        tag=CHALLENGE_MASTER,
        description="Complete every day of the challenge.",
        predicate=lambda record, duration: record.total_days_completed == duration,
    ),
)

ACHIEVEMENT_TAGS = frozenset(rule.tag for rule in ACHIEVEMENT_RULES)


def evaluate_achievements(
    record: ProgressRecord,
    duration: int,
    rules: Tuple[AchievementRule, ...] = ACHIEVEMENT_RULES,
) -> List[str]:
    """Return tags that qualify now and are not yet unlocked, in rule order."""
    unlocked = set(record.achievements)
    return [
        rule.tag
        for rule in rules
        if rule.tag not in unlocked and rule.qualifies(record, duration)
    ]
