from dataclasses import dataclass
from typing import Mapping


@dataclass(frozen=True)
class GameRules:
    """Tunable game constants, normally built from the Flask config."""

    min_players: int = 1
    max_players: int = 12
    correct_guess_points: int = 10
    storyteller_miss_points: int = 1
    story_time_seconds: int = 600
    guess_time_seconds: int = 420
    cleanup_delay_sec: int = 35
    whisp_fallback: str = 'story'

    @classmethod
    def from_config(cls, config: Mapping) -> 'GameRules':
        return cls(
            min_players=max(1, int(config.get('MIN_PLAYERS', 1))),
            max_players=int(config.get('MAX_PLAYERS', 12)),
            correct_guess_points=int(config.get('CORRECT_GUESS_POINTS', 10)),
            storyteller_miss_points=int(config.get('STORYTELLER_MISS_POINTS', 1)),
            story_time_seconds=int(config.get('STORY_TIME_SECONDS', 600)),
            guess_time_seconds=int(config.get('GUESS_TIME_SECONDS', 420)),
            cleanup_delay_sec=int(config.get('CLEANUP_DELAY_SEC', 35)),
            whisp_fallback=str(config.get('WHISP_FALLBACK', 'story')),
        )


DEFAULT_RULES = GameRules()
