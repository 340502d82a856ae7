"""Learner-facing feedback derived from a score."""

from coursetrack.grading.schemas import Feedback, PerformanceTier


EXCELLENT_THRESHOLD = 90
GOOD_THRESHOLD = 80


def performance_tier(percentage: int, passed: bool) -> PerformanceTier:
    if percentage >= EXCELLENT_THRESHOLD:
        return PerformanceTier.EXCELLENT
    if percentage >= GOOD_THRESHOLD:
        return PerformanceTier.GOOD
    if passed:
        return PerformanceTier.SATISFACTORY
    return PerformanceTier.NEEDS_IMPROVEMENT


_STRENGTHS = {
    PerformanceTier.EXCELLENT: ["Demonstrated mastery of the material"],
    PerformanceTier.GOOD: ["Solid understanding of the core concepts"],
    PerformanceTier.SATISFACTORY: ["Grasped enough of the material to pass"],
    PerformanceTier.NEEDS_IMPROVEMENT: [],
}

_SUGGESTIONS = {
    PerformanceTier.EXCELLENT: ["Move on to the next module"],
    PerformanceTier.GOOD: ["Review the questions you missed before moving on"],
    PerformanceTier.SATISFACTORY: [
        "Revisit the lessons for the questions you missed",
        "Consider retaking the quiz to strengthen retention",
    ],
    PerformanceTier.NEEDS_IMPROVEMENT: [
        "Rewatch the lessons covered by this quiz",
        "Read the explanations for each question before retrying",
        "Use the available hints on your next attempt",
    ],
}


def build_feedback(percentage: int, passed: bool) -> Feedback:
    """Build feedback from the score alone.

    The result depends only on ``percentage`` and ``passed``, so identical
    scores always produce identical feedback.
    """
    tier = performance_tier(percentage, passed)

    if not passed:
        overall = f"You scored {percentage}%. Review the material and try again."
    elif tier == PerformanceTier.EXCELLENT:
        overall = "Excellent work! You have demonstrated mastery of the material."
    elif tier == PerformanceTier.GOOD:
        overall = "Good job! You passed with a solid understanding."
    else:
        overall = "You passed! Consider reviewing some areas for better retention."

    return Feedback(
        overall=overall,
        performance=tier,
        strengths=list(_STRENGTHS[tier]),
        suggestions=list(_SUGGESTIONS[tier]),
    )
