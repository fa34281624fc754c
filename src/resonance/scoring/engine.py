"""Resonance score calculation for creator posts.

Comments and shares are weighted above passive likes, and the result is
clamped to ``[MIN_SCORE, MAX_SCORE]`` so a single viral outlier cannot
dominate a campaign's payout split.
"""

from resonance.domain.models import EngagementMetrics

# Substituted when a post reports no views, so the rate stays finite
DEFAULT_VIEWS = 1000

# Scales the weighted engagement rate onto the score range
RESONANCE_MULTIPLIER = 1000

MIN_SCORE = 1.0
MAX_SCORE = 100.0

LIKE_WEIGHT = 1
COMMENT_WEIGHT = 2
SHARE_WEIGHT = 3


def _effective_views(metrics: EngagementMetrics, default_views: int) -> int:
    return metrics.views if metrics.views > 0 else default_views


def engagement_rate(metrics: EngagementMetrics, default_views: int = DEFAULT_VIEWS) -> float:
    """Return the unweighted engagement rate ``(likes + comments + shares) / views``.

    Args:
        metrics: Engagement counts for the post.
        default_views: View count substituted when ``metrics.views`` is zero.

    Returns:
        The engagement rate as a ratio (``0.05`` means 5%).
    """
    views = _effective_views(metrics, default_views)
    return (metrics.likes + metrics.comments + metrics.shares) / views


def compute_resonance(
    metrics: EngagementMetrics,
    multiplier: float = RESONANCE_MULTIPLIER,
    default_views: int = DEFAULT_VIEWS,
) -> float:
    """Compute the resonance score for a post.

    Formula: ``(likes + 2*comments + 3*shares) / views * multiplier``,
    clamped to ``[1, 100]``.  Deterministic and side-effect free; the score
    is non-decreasing in each of likes, comments, and shares.

    Args:
        metrics: Engagement counts for the post.
        multiplier: Scale applied to the weighted engagement rate.
        default_views: View count substituted when ``metrics.views`` is zero.

    Returns:
        The resonance score in ``[1, 100]``.
    """
    views = _effective_views(metrics, default_views)
    weighted = (
        LIKE_WEIGHT * metrics.likes
        + COMMENT_WEIGHT * metrics.comments
        + SHARE_WEIGHT * metrics.shares
    )
    score = weighted / views * multiplier
    return max(MIN_SCORE, min(MAX_SCORE, score))
