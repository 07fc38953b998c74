from typing import Optional, Tuple

from phraseotomy.models import Player, Turn, TIMEOUT_SENTINEL
from .rules import GameRules

CUSTOM_PREFIX = 'custom:'


def normalize_answer(text: Optional[str]) -> str:
    """Canonical form used to compare a guess with the turn's secret."""
    value = (text or '').strip()
    if value.lower().startswith(CUSTOM_PREFIX):
        value = value[len(CUSTOM_PREFIX):]
    return value.strip().lower()


def guess_matches(turn: Turn, content: Optional[str]) -> bool:
    if not turn.secret_element or content is None or content == TIMEOUT_SENTINEL:
        return False
    guess = normalize_answer(content)
    return bool(guess) and guess == normalize_answer(turn.secret_element)


def score_guess(turn: Turn, content: Optional[str], is_timeout: bool, rules: GameRules) -> Tuple[int, int]:
    """Return (guesser_points, storyteller_points) for one guess.

    A match pays the guesser; a miss or a timeout pays the storyteller.
    Every matching guess pays, so a turn's totals do not depend on the
    order guesses arrive in.
    """
    if not is_timeout and guess_matches(turn, content):
        return rules.correct_guess_points, 0
    return 0, rules.storyteller_miss_points


def award_points(store, session_id: int, player_id: str, points: int) -> None:
    """Atomically add ``points`` to a player's score (never subtracts)."""
    if points <= 0:
        return
    store.query(Player).filter(
        Player.session_id == session_id,
        Player.player_id == player_id,
    ).update({Player.score: Player.score + points}, synchronize_session=False)
