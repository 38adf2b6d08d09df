"""
Snapshot-based undo/redo over timeline states.
"""

from dataclasses import dataclass, field

from storyreel.models import Timeline


@dataclass
class History:
    """
    Full-state undo stack.

    Every commit pushes the present snapshot onto ``past`` and clears
    ``future``. Snapshots are immutable models, so sharing them is safe.
    """

    present: Timeline
    past: list[Timeline] = field(default_factory=list)
    future: list[Timeline] = field(default_factory=list)

    @property
    def can_undo(self) -> bool:
        return bool(self.past)

    @property
    def can_redo(self) -> bool:
        return bool(self.future)

    def commit(self, timeline: Timeline) -> Timeline:
        """Make ``timeline`` the present state. No-op if nothing changed."""
        if timeline is self.present:
            return self.present
        self.past.append(self.present)
        self.present = timeline
        self.future.clear()
        return self.present

    def undo(self) -> Timeline:
        if self.past:
            self.future.insert(0, self.present)
            self.present = self.past.pop()
        return self.present

    def redo(self) -> Timeline:
        if self.future:
            self.past.append(self.present)
            self.present = self.future.pop(0)
        return self.present
