"""
ActualText region tracking.

A marked-content sequence may carry an ``/ActualText`` entry in its
property list (PDF 32000-1:2008, 14.9.4). The string replaces all text
shown inside the sequence, including nested sequences. The tracker only
remembers the stack depth at which the outermost such region opened;
everything at or below that depth is suppressed until the stack unwinds
past it again.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def resolve_actual_text(properties: Any) -> Optional[str]:
    """
    Return the ActualText string of a marked-content property list.

    Returns None when there is no property list, when it has no
    ``/ActualText`` entry, or when the entry does not resolve to a text
    string.
    """
    if properties is None:
        return None
    try:
        value = properties.get("/ActualText")
        if value is None:
            return None
        value = value.get_object() if hasattr(value, "get_object") else value
    except Exception as e:
        logger.debug("Ignoring unresolvable ActualText: %s", e)
        return None
    if not isinstance(value, str):
        return None
    return str(value)


class ActualTextTracker:
    """Depth-keyed state machine deciding which glyphs an ActualText region hides."""

    def __init__(self) -> None:
        self.open_depth: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.open_depth is not None

    def begin_marked_content(self, depth: int, properties: Any) -> Optional[str]:
        """
        Handle the start of a marked-content sequence.

        Args:
            depth: The marked-content stack depth, counting the new
                sequence.
            properties: The sequence's property list, or None.

        Returns:
            The replacement text to write, or None if no region was opened.
            Regions nested inside an active region are ignored.
        """
        if self.active:
            return None
        text = resolve_actual_text(properties)
        if text is None:
            return None
        self.open_depth = depth
        return text

    def end_marked_content(self, depth: int) -> None:
        """Handle the end of a marked-content sequence, ``depth`` is taken after the pop."""
        if self.active and depth < self.open_depth:
            self.open_depth = None

    def is_suppressed(self, depth: int) -> bool:
        return self.active and depth >= self.open_depth
