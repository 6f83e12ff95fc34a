"""Attribute sequencing: the slider/step-button state machine."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol, Sequence

from geojson_data import attribute_label

logger = logging.getLogger(__name__)


class SequenceView(Protocol):
    def show_index(self, index: int) -> None:
        ...

    def show_label(self, text: str) -> None:
        ...


class SequenceController:
    """Owns the current attribute index and wraps it at both ends.

    Every transition notifies ``on_change`` with the newly selected attribute
    and pushes the index and label to the bound view. With no attributes the
    transitions do nothing.
    """

    def __init__(
        self,
        attributes: Sequence[str],
        on_change: Optional[Callable[[str], None]] = None,
        view: Optional[SequenceView] = None,
    ) -> None:
        self.attributes: List[str] = list(attributes)
        self.on_change = on_change
        self.view = view
        self.index = 0

    @property
    def current_attribute(self) -> Optional[str]:
        if not self.attributes:
            return None
        return self.attributes[self.index]

    @property
    def label(self) -> str:
        attribute = self.current_attribute
        return attribute_label(attribute) if attribute else ""

    def set_index(self, index: int) -> None:
        if not self.attributes:
            return
        if index < 0 or index >= len(self.attributes):
            raise IndexError(
                f"Sequence index {index} out of range for {len(self.attributes)} attributes."
            )
        self.index = int(index)
        self._changed()

    def step_forward(self) -> None:
        if not self.attributes:
            return
        self.index = (self.index + 1) % len(self.attributes)
        self._changed()

    def step_reverse(self) -> None:
        if not self.attributes:
            return
        self.index = (self.index - 1) % len(self.attributes)
        self._changed()

    def refresh(self) -> None:
        if self.attributes:
            self._changed()

    def _changed(self) -> None:
        attribute = self.attributes[self.index]
        logger.debug("Sequence index %d -> %s", self.index, attribute)
        if self.view is not None:
            self.view.show_index(self.index)
            self.view.show_label(self.label)
        if self.on_change is not None:
            self.on_change(attribute)
