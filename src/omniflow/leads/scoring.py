# src/omniflow/leads/scoring.py

from __future__ import annotations

from typing import Any

BASE_SCORE = 50
MAX_INITIAL_SCORE = 100
DEFAULT_WEIGHT = 50
DETAILED_CHALLENGE_BONUS = 20
DETAILED_CHALLENGE_MIN_CHARS = 50

SIZE_WEIGHTS: dict[str, int] = {
    "startup": 60,
    "small": 75,
    "medium": 85,
    "large": 95,
}

SOURCE_WEIGHTS: dict[str, int] = {
    "free_audit": 80,
    "consultation_request": 90,
    "platform_trial": 85,
    "referral": 95,
    "organic_search": 70,
    "landing_page": 65,
}

# keyword in the challenge text -> tag
CHALLENGE_TAGS: tuple[tuple[str, str], ...] = (
    ("lead", "lead_management"),
    ("email", "email_automation"),
    ("workflow", "workflow_automation"),
    ("report", "reporting"),
    ("crm", "crm_integration"),
)

# Score increments applied by record_interaction. Not re-capped.
INTERACTION_SCORES: dict[str, int] = {
    "email_opened": 5,
    "email_clicked": 10,
    "demo_requested": 20,
}


def calculate_initial_score(data: dict[str, Any]) -> int:
    """
    base 50 + size weight + source weight (+20 for a detailed challenge), capped at 100.

    Unknown sizes and sources weigh 50.
    """
    score = BASE_SCORE
    score += SIZE_WEIGHTS.get(str(data.get("companySize") or ""), DEFAULT_WEIGHT)
    score += SOURCE_WEIGHTS.get(str(data.get("source") or ""), DEFAULT_WEIGHT)

    challenge = str(data.get("challenge") or "")
    if len(challenge) > DETAILED_CHALLENGE_MIN_CHARS:
        score += DETAILED_CHALLENGE_BONUS

    return min(score, MAX_INITIAL_SCORE)


def generate_initial_tags(data: dict[str, Any]) -> list[str]:
    tags: list[str] = []
    for raw in (data.get("companySize"), data.get("source")):
        value = str(raw or "").strip()
        if value and value not in tags:
            tags.append(value)

    challenge = str(data.get("challenge") or "").lower()
    for keyword, tag in CHALLENGE_TAGS:
        if keyword in challenge and tag not in tags:
            tags.append(tag)
    return tags


def interaction_score(interaction_type: str) -> int:
    return INTERACTION_SCORES.get(interaction_type, 0)
