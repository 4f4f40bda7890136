import math
from dataclasses import dataclass

K_FACTOR = 32.0
HIGH_RATING_K_FACTOR = 16.0
DEFAULT_RATING = 1000

WIN = 1.0
DRAW = 0.5
LOSS = 0.0
_VALID_RESULTS = {WIN, DRAW, LOSS}


@dataclass(frozen=True)
class EloPolicy:
    """K-factor policy shared by every code path that moves ratings.

    ``high_rating_threshold`` is disabled by default. When set, a player whose
    own pre-match rating is strictly above it uses ``high_rating_k_factor``.
    """

    k_factor: float = K_FACTOR
    high_rating_threshold: float | None = None
    high_rating_k_factor: float = HIGH_RATING_K_FACTOR

    def k_for(self, rating: float) -> float:
        if self.high_rating_threshold is not None and rating > self.high_rating_threshold:
            return self.high_rating_k_factor
        return self.k_factor


DEFAULT_POLICY = EloPolicy()


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that a player rated ``rating`` beats ``opponent_rating``."""

    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def elo_rating(
    rating: float,
    opponent_rating: float,
    result: float,
    policy: EloPolicy = DEFAULT_POLICY,
) -> float:
    """Return the unrounded post-match rating.

    Args:
        rating: The player's pre-match rating.
        opponent_rating: The opponent's pre-match rating.
        result: ``1`` for a win, ``0.5`` for a draw and ``0`` for a loss.
        policy: K-factor policy to apply.
    """

    if result not in _VALID_RESULTS:
        raise ValueError(f"result must be one of 0, 0.5 or 1 (got {result!r})")
    k = policy.k_for(rating)
    return rating + k * (result - expected_score(rating, opponent_rating))


def round_rating(value: float) -> int:
    # half-up, so 1015.5 -> 1016 and -0.5 -> 0
    return int(math.floor(value + 0.5))


def settle_ratings(
    winner_rating: float,
    loser_rating: float,
    policy: EloPolicy = DEFAULT_POLICY,
) -> tuple[int, int]:
    """Return rounded ``(winner, loser)`` ratings computed from pre-match values."""

    new_winner = elo_rating(winner_rating, loser_rating, WIN, policy)
    new_loser = elo_rating(loser_rating, winner_rating, LOSS, policy)
    return round_rating(new_winner), round_rating(new_loser)
