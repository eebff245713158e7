"""
Progress Tracker Module

Wraps the rich library for the two progress displays of a session: the
dialogue countdown and the "thinking" spinner shown while the report is
being evaluated.

Example Usage:
    from ivy_guide.utils.progress_tracker import ProgressTracker

    tracker = ProgressTracker()

    tracker.start_countdown(total_s=300)
    tracker.update_remaining(remaining_s=240)
    tracker.stop()

    tracker.start_evaluation("Ivy is preparing your report")
    tracker.stop()
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)


def format_clock(seconds: int) -> str:
    """Format seconds as M:SS."""
    seconds = max(seconds, 0)
    return f"{seconds // 60}:{seconds % 60:02d}"


class ProgressTracker:
    """Manages the session countdown bar and evaluation spinner."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()
        self.progress: Optional[Progress] = None
        self.task_id: Optional[TaskID] = None
        self.mode: str = ""
        self.total_s: int = 0
        self.remaining_s: int = 0

    def start_countdown(self, total_s: int, remaining_s: Optional[int] = None) -> None:
        """
        Show the dialogue countdown.

        Args:
            total_s: Full session duration in seconds
            remaining_s: Seconds left (defaults to the full duration)

        Example:
            tracker.start_countdown(total_s=300)
            # Displays: "Time left 5:00 [-----]"
        """
        self.stop()
        self.mode = "countdown"
        self.total_s = total_s
        self.remaining_s = total_s if remaining_s is None else remaining_s

        self.progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            console=self.console,
            transient=True,
        )
        self.progress.start()
        self.task_id = self.progress.add_task(
            description=f"Time left {format_clock(self.remaining_s)}",
            total=total_s,
            completed=total_s - self.remaining_s,
        )

    def update_remaining(self, remaining_s: int) -> None:
        """
        Move the countdown to ``remaining_s`` seconds left.

        Example:
            tracker.update_remaining(remaining_s=240)  # bar at 60/300
        """
        if self.progress is None or self.task_id is None or self.mode != "countdown":
            return

        self.remaining_s = remaining_s
        self.progress.update(
            self.task_id,
            completed=self.total_s - remaining_s,
            description=f"Time left {format_clock(remaining_s)}",
        )

    def start_evaluation(self, description: str = "Ivy is thinking about your report") -> None:
        """Show an indeterminate spinner while the report is prepared."""
        self.stop()
        self.mode = "evaluation"
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold magenta]{task.description}"),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        self.progress.start()
        self.task_id = self.progress.add_task(description=description, total=None)

    def stop(self) -> None:
        """Stop whichever display is active and reset state."""
        if self.progress is not None:
            self.progress.stop()

        self.progress = None
        self.task_id = None
        self.mode = ""
        self.total_s = 0
        self.remaining_s = 0

    def is_active(self) -> bool:
        """
        Check if a display is currently active.

        Returns:
            True if a countdown or spinner is shown, False otherwise
        """
        return self.progress is not None and self.task_id is not None
