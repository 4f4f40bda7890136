"""Settlement services: the pure rating maths plus the store-backed procedures."""

from .rating import EloPolicy, elo_rating, expected_score, settle_ratings
from .ladder import apply_challenge_outcome, get_ladder, swap_ladder_positions
from .settlement import register_match_result, settle_match
from .reconciliation import reconcile_rankings

__all__ = [
    "EloPolicy",
    "elo_rating",
    "expected_score",
    "settle_ratings",
    "apply_challenge_outcome",
    "get_ladder",
    "swap_ladder_positions",
    "register_match_result",
    "settle_match",
    "reconcile_rankings",
]
