"""Stage tracking for multi-step CLI jobs such as the daily run."""

from typing import List, Optional

import click


class ProgressTracker:
    """Track progress through the named stages of a job.

    Attributes:
        stages: Stage names in execution order
        current_stage: Index of the stage being worked on (0-based)
    """

    def __init__(self, stages: List[str]):
        self.stages = stages
        self.current_stage = 0

    @property
    def total_stages(self) -> int:
        return len(self.stages)

    def start(self) -> None:
        """Print the header line of the current stage."""
        click.echo(self.get_current_message())

    def advance(self, message: Optional[str] = None) -> None:
        """Finish the current stage, optionally printing a result line."""
        if message:
            click.echo(f"  {message}")
        self.current_stage += 1

    def get_current_message(self) -> str:
        if self.current_stage < self.total_stages:
            stage_name = self.stages[self.current_stage]
            return f"[{self.current_stage + 1}/{self.total_stages}] {stage_name}"
        return f"[{self.total_stages}/{self.total_stages}] Complete"

    def is_complete(self) -> bool:
        return self.current_stage >= self.total_stages
