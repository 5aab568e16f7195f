"""
Step Cursor
Navigation over the ordered steps of a build order.
Constraint: the index always stays inside [0, N-1]; boundary moves are no-ops, there is no wraparound.
"""

from typing import Generic, List, Sequence, TypeVar

T = TypeVar("T")


def format_game_time(minutes: int, seconds: int) -> str:
    """Formats an in-game timestamp as m:ss."""
    return f"{minutes}:{seconds:02d}"


def step_offset_seconds(step) -> int:
    """Seconds of game time elapsed when the step is due."""
    return step.time_minutes * 60 + step.time_seconds


class StepCursor(Generic[T]):
    """
    Bounded cursor over a non-empty, already ordered sequence of steps.
    States are 'at start', 'mid-sequence' and 'at end', distinguished only
    by which of advance()/retreat() is a no-op.
    """

    def __init__(self, steps: Sequence[T]):
        if not steps:
            raise ValueError("A step cursor needs at least one step")
        self._steps: List[T] = list(steps)
        self._index = 0

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def index(self) -> int:
        return self._index

    @property
    def current(self) -> T:
        return self._steps[self._index]

    @property
    def steps(self) -> List[T]:
        return list(self._steps)

    @property
    def at_start(self) -> bool:
        return self._index == 0

    @property
    def at_end(self) -> bool:
        return self._index == len(self._steps) - 1

    @property
    def position(self) -> str:
        return f"Step {self._index + 1} of {len(self._steps)}"

    def advance(self) -> T:
        self._index = min(self._index + 1, len(self._steps) - 1)
        return self.current

    def retreat(self) -> T:
        self._index = max(self._index - 1, 0)
        return self.current

    def jump_to(self, k: int) -> T:
        if isinstance(k, bool) or not isinstance(k, int) or not 0 <= k < len(self._steps):
            raise IndexError(f"Step index {k} out of range 0..{len(self._steps) - 1}")
        self._index = k
        return self.current

    def due_index(self, elapsed_seconds: int) -> int:
        """
        Timer mode: index of the last step whose game time has been reached.
        Never earlier than the current index, so the timer only moves forward.
        """
        due = self._index
        for i in range(self._index, len(self._steps)):
            if step_offset_seconds(self._steps[i]) <= elapsed_seconds:
                due = i
        return due
