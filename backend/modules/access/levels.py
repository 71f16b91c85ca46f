"""
Level progression policy.

A user's level is a monotonic step function of how many distinct models
they have used and how many generations they have run. Thresholds come
from settings so they can be tuned without code changes.
"""

from typing import Optional

from pydantic import BaseModel, Field


LEVEL_TITLES = (
    (2, "Novice Creator"),
    (4, "Skilled Artist"),
    (6, "Expert Designer"),
    (8, "Master Creator"),
)
TOP_LEVEL_TITLE = "Legendary Artist"


def level_title(level: int) -> str:
    """Display title for a level."""
    for ceiling, title in LEVEL_TITLES:
        if level <= ceiling:
            return title
    return TOP_LEVEL_TITLE


class LevelPolicy(BaseModel):
    """
    Thresholds for level progression.

    Level n (n >= 2) requires (n - 1) * unique_model_step distinct models
    AND (n - 1) * generation_step total generations. Level 1 has no
    requirement and max_level caps the result.
    """

    unique_model_step: int = Field(default=5, ge=1)
    generation_step: int = Field(default=5, ge=1)
    max_level: int = Field(default=10, ge=1)

    model_config = {"frozen": True}

    def level_for(self, unique_models_used: int, total_generations: int) -> int:
        by_models = unique_models_used // self.unique_model_step
        by_generations = total_generations // self.generation_step
        return min(1 + min(by_models, by_generations), self.max_level)

    def requirements_for(self, level: int) -> Optional[tuple[int, int]]:
        """
        (unique models, generations) needed to reach a level.

        Returns None for levels above max_level.
        """
        if level > self.max_level:
            return None
        steps = max(level - 1, 0)
        return steps * self.unique_model_step, steps * self.generation_step
