"""
Fragment containers.

A fragment is one translatable span of markup owned by the caller (a page
element, a JSON record, a line in a file). The pipeline only needs to read
its markup, write the translation back and flag its state, so containers are
described by a small protocol instead of a concrete UI tree type.
"""

from enum import Enum
from typing import Optional, Protocol


class FragmentState(Enum):
    """Lifecycle of a fragment in one translation pass."""
    PENDING = "pending"
    CACHED = "cached"
    QUEUED = "queued"
    TRANSLATING = "translating"
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_final(self) -> bool:
        return self in (FragmentState.APPLIED, FragmentState.FAILED, FragmentState.SKIPPED)

    @property
    def is_busy(self) -> bool:
        """Applied, or owned by a pass that has not finished with it."""
        return self in (FragmentState.CACHED, FragmentState.QUEUED, FragmentState.TRANSLATING, FragmentState.APPLIED)


class FragmentContainer(Protocol):
    """Interface a caller-owned fragment must offer to the pipeline."""

    def get_content(self) -> str:
        """Return the current markup."""
        ...

    def set_content(self, text: str) -> None:
        """Replace the markup with its translation."""
        ...

    def mark_state(self, state: FragmentState) -> None:
        """Record the fragment's pipeline state."""
        ...

    def get_state(self) -> FragmentState:
        """Return the state last recorded with mark_state."""
        ...


class HtmlFragment:
    """
    In-memory fragment holding a markup string.

    Remembers the markup it was created with so a translated fragment can be
    put back with restore().
    """

    def __init__(self, content: str, fragment_id: Optional[str] = None):
        self.fragment_id = fragment_id
        self.original_content = content
        self.content = content
        self.state = FragmentState.PENDING

    def get_content(self) -> str:
        return self.content

    def set_content(self, text: str) -> None:
        self.content = text

    def mark_state(self, state: FragmentState) -> None:
        self.state = state

    def get_state(self) -> FragmentState:
        return self.state

    @property
    def translated(self) -> bool:
        return self.state == FragmentState.APPLIED

    @property
    def failed(self) -> bool:
        return self.state == FragmentState.FAILED

    def restore(self) -> None:
        """Put the original markup back and reset the state."""
        self.content = self.original_content
        self.state = FragmentState.PENDING

    def __repr__(self) -> str:
        preview = self.content[:50] + "..." if len(self.content) > 50 else self.content
        return f"HtmlFragment(id={self.fragment_id}, state={self.state.value}, content='{preview}')"
