"""Trigger-specific notification copy."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any

from stepquest.leaderboard.schemas import LeaderboardEntry

CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


# --- Daily facts (walking / health only) ---
FACT_CATEGORIES: dict[str, tuple[str, ...]] = {
    "walking": (
        "Just 10 minutes of walking can boost your mood for hours. Ready to test it?",
        "The average person walks ~7,500 steps a day. Let’s beat that today.",
        "Walking 1 mile burns about 100 calories. Time to earn that snack.",
        "Regular walking lowers heart disease risk by 30%. Let’s go protect that ticker.",
        "The longest recorded walk was 19,019 miles! We’ll settle for a few hundred today.",
        "Walking boosts creativity by up to 60%. Maybe your next big idea is a few steps away.",
        "A brisk walk can add years to your life. Start investing now.",
        "Walking 20 minutes a day can cut fatigue by 65%. Energy upgrade, incoming.",
        "Your bones love walking, it keeps them strong and healthy.",
        "People who walk more smile more. Coincidence? Let’s find out.",
        "Walking just 30 minutes a day can improve your memory and brain function.",
        "Walking after meals helps control blood sugar levels.",
        "Walking outdoors can boost vitamin D and improve your mood.",
        "People who walk regularly sleep better at night.",
        "Walking improves posture and reduces back pain.",
        "Walking daily can help lower stress hormones by up to 15%.",
        "Walking is a weight-bearing exercise that strengthens muscles and bones.",
        "Brisk walking burns more fat than jogging at the same distance.",
        "Walking can reduce the risk of stroke by up to 27%.",
    ),
}

# --- Inactivity copy ---
INACTIVITY_TITLES: tuple[str, ...] = (
    "🕒 Time to Move",
    "Stretch Those Legs",
    "Beat the Couch",
    "Don't be a potato",
    "Your Steps Miss You",
    "Quick Walk Break?",
    "Don't Let the Day Sit Still",
)

INACTIVITY_BODIES: tuple[str, ...] = (
    "Your shoes miss you. Take them out for a walk 🥿🚶",
    "Those steps won’t count themselves… unless you’re on a moving bus. 😉",
    "Your couch is winning. Time to fight back 💪",
    "Warning: Sitting too long may cause excessive scrolling 🤳. Walk a bit instead!",
    "Your step counter is bored. Make it happy!",
    "Imagine how proud your future self will be if you walk now 🏆",
    "Stand up, stretch, and take 100 steps. Your streak will thank you!",
    "Your leaderboard rivals hope you stay seated… Don’t give them that satisfaction 😏",
    "Even a short walk counts. Let’s go!",
    "This is your gentle reminder to stop being a potato 🥔",
)


def rank_text(rank: int) -> str:
    if rank == 1:
        return "1st"
    elif rank == 2:
        return "2nd"
    elif rank == 3:
        return "3rd"
    return f"{rank}th"


def daily_reward(winner: LeaderboardEntry, day_key: str) -> NotificationContent:
    return NotificationContent(
        title="Daily Leaderboard Winner! 🏆",
        body=(
            f"Congratulations! You finished {rank_text(winner.rank)} with {winner.steps} steps "
            f"and earned {winner.reward} coins!"
        ),
        data={
            "type": "daily_reward",
            "rank": winner.rank,
            "steps": winner.steps,
            "coins": winner.reward,
            "date": day_key,
        },
    )


def weekly_reward(winner: LeaderboardEntry, week_key: str) -> NotificationContent:
    return NotificationContent(
        title="Weekly Leaderboard Winner! 🏆",
        body=(
            f"Congratulations! You finished {rank_text(winner.rank)} this week with {winner.steps} steps "
            f"and earned {winner.reward} coins!"
        ),
        data={
            "type": "weekly_reward",
            "rank": winner.rank,
            "steps": winner.steps,
            "coins": winner.reward,
            "weekStart": week_key,
        },
    )


def goal_completed(goal: int, day_key: str) -> NotificationContent:
    return NotificationContent(
        title="Daily Challenge Completed",
        body=f"You've completed your daily step goal of {goal} steps!",
        data={"type": "daily_goal_completed", "goal": goal, "date": day_key},
    )


def goal_reminder(goal: int, timestamp_ms: int) -> NotificationContent:
    return NotificationContent(
        title="⏰ Streak in Danger!",
        body="You're running out of time to reach today's goal.",
        data={"type": "final", "goal": goal, "timestamp": timestamp_ms},
    )


def inactivity(day_key: str, rng: random.Random | None = None) -> NotificationContent:
    """Random title/body pair; the choice is cosmetic only."""
    rng = rng or random.Random()
    return NotificationContent(
        title=rng.choice(INACTIVITY_TITLES),
        body=rng.choice(INACTIVITY_BODIES),
        data={"type": "inactivity", "date": day_key},
    )


def pick_fact(day_of_year: int, day_of_month: int = 1) -> tuple[str, str]:
    """Deterministic (category, fact) for a day: identical for every user."""
    categories = list(FACT_CATEGORIES)
    category = categories[(day_of_month - 1) % len(categories)]
    pool = FACT_CATEGORIES[category]
    return category, pool[day_of_year % len(pool)]


def daily_fact(category: str, fact: str, day_key: str) -> NotificationContent:
    return NotificationContent(
        title="Did you know",
        body=fact,
        data={"type": "daily_fact", "category": category, "date": day_key},
    )


def duo_invite(inviter_name: str, invite_id: str) -> NotificationContent:
    return NotificationContent(
        title="Duo Challenge Invite",
        body=f"{inviter_name} is inviting you to a Duo Challenge!",
        data={"type": "duo_challenge_invite", "inviterUsername": inviter_name, "inviteId": invite_id},
    )
