"""
Ordered entity collections for points and spots.

Each store owns its list; every mutation goes through the store so the
ordinal ``index`` of each entity always matches its list position and
every change raises a notification carrying the full collection.
"""

import logging
from typing import Dict, Iterator, List, Optional

from .events import AnnotationEvent, EventEmitter, EventType
from .state import EntityKind, Point, Spot
from .utils import find_first_within
from .validation import format_label

logger = logging.getLogger(__name__)


class EntityStore:
    """
    Generic ordered collection of labeled entities.

    Subclasses set the entity class, its kind and the event types used
    for change and count notifications.
    """

    entity_cls = None
    kind: EntityKind = None
    changed_event: EventType = None
    count_event: EventType = None

    def __init__(self, events: Optional[EventEmitter] = None):
        self.items: List = []
        # Label each entity had before uncommitted edits, by id(entity)
        self._committed_labels: Dict[int, str] = {}
        self.events = events if events is not None else EventEmitter()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator:
        return iter(self.items)

    @property
    def label_field(self) -> str:
        return self.entity_cls.LABEL_FIELD

    def is_valid_index(self, index: int) -> bool:
        return 0 <= index < len(self.items)

    def get(self, index: int):
        """Entity at ``index``, or None when the index is out of range."""
        if self.is_valid_index(index):
            return self.items[index]
        return None

    # --- Mutation ---

    def add(self, x: float, y: float, label: str = ""):
        """
        Append a new entity after pruning trailing blank-labeled ones.

        Returns:
            The added entity
        """
        self.prune_trailing_empty(notify=False)
        entity = self.entity_cls(
            x=int(round(x)),
            y=int(round(y)),
            index=len(self.items),
            **{self.label_field: label},
        )
        self.items.append(entity)
        self._notify_changed(count=True)
        return entity

    def remove(self, index: int) -> bool:
        """Remove the entity at ``index`` and re-sequence the rest."""
        if not self.is_valid_index(index):
            logger.debug(f"Ignoring remove of {self.kind.value} at invalid index {index}")
            return False
        self._committed_labels.pop(id(self.items[index]), None)
        del self.items[index]
        self._reindex()
        self._notify_changed(count=True)
        return True

    def update(self, index: int, field: str, value, skip_resync: bool = False) -> bool:
        """
        Mutate one field of the entity at ``index`` in place.

        Args:
            index: Entity position
            field: ``x``, ``y`` or the label field
            value: New value; coordinates are rounded to integers
            skip_resync: True for keystrokes and drag frames (cheap redraw)
        """
        if field not in ("x", "y", self.label_field):
            raise ValueError(f"Cannot update field '{field}' of a {self.kind.value}")
        if not self.is_valid_index(index):
            logger.debug(f"Ignoring update of {self.kind.value} at invalid index {index}")
            return False
        if field in ("x", "y"):
            value = int(round(value))
        setattr(self.items[index], field, value)
        self._notify_changed(skip_resync=skip_resync)
        return True

    def move(self, index: int, x: float, y: float, skip_resync: bool = True) -> bool:
        """Set both coordinates at once; used for drag frames."""
        if not self.is_valid_index(index):
            return False
        entity = self.items[index]
        entity.x = int(round(x))
        entity.y = int(round(y))
        self._notify_changed(skip_resync=skip_resync)
        return True

    def clear(self):
        self.items = []
        self._committed_labels.clear()
        self._notify_changed(count=True)

    def replace_all(self, entities: List):
        """Replace the whole collection, e.g. after loading a document."""
        self.items = list(entities)
        self._reindex()
        self._committed_labels.clear()
        self._notify_changed(count=True)

    def prune_trailing_empty(self, notify: bool = True) -> int:
        """
        Remove blank-labeled entities from the end of the list.

        Marker entities are skipped over; a labeled entity stops the scan.
        Blanks in the middle of the list are never touched.

        Returns:
            Number of entities removed
        """
        removed = 0
        for i in range(len(self.items) - 1, -1, -1):
            entity = self.items[i]
            if getattr(entity, "is_marker", False):
                continue
            if (entity.label or "") != "":
                break
            self._committed_labels.pop(id(entity), None)
            del self.items[i]
            removed += 1
        if removed:
            self._reindex()
            if notify:
                self._notify_changed(count=True)
        return removed

    # --- Labels ---

    def format_label(self, text: str) -> str:
        return text.strip() if text else text

    def edit_label(self, index: int, text: str) -> bool:
        """Store raw text while typing; overlay widgets are not rebuilt."""
        entity = self.get(index)
        if entity is not None:
            self._committed_labels.setdefault(id(entity), entity.label or "")
        return self.update(index, self.label_field, text, skip_resync=True)

    def committed_label(self, index: int) -> str:
        """
        Label the entity had at its last commit, ignoring pending edits.

        Entities added with a label or loaded from a document count as
        committed.
        """
        entity = self.get(index)
        if entity is None:
            return ""
        return self._committed_labels.get(id(entity), entity.label or "")

    def commit_label(self, index: int, text: str) -> bool:
        """
        Finalize a label when its field loses focus.

        A blank label destroys the entity; otherwise the label is
        formatted and a full resync is requested.

        Returns:
            True if the entity still exists afterwards
        """
        if not self.is_valid_index(index):
            return False
        if not text or not text.strip():
            self.remove(index)
            return False
        self._committed_labels.pop(id(self.items[index]), None)
        return self.update(index, self.label_field, self.format_label(text))

    def format_all_labels(self):
        for entity in self.items:
            if entity.label:
                setattr(entity, self.label_field, self.format_label(entity.label))
        self._notify_changed()

    def registered_labels(self) -> List[str]:
        """All non-blank labels in list order."""
        return [e.label for e in self.items if e.label and e.label.strip()]

    def find_by_label(self, label: str) -> int:
        """Index of the first entity with exactly this label, or -1."""
        for i, entity in enumerate(self.items):
            if entity.label == label:
                return i
        return -1

    def find_by_partial_label(self, text: str) -> List:
        """Entities whose label contains ``text``, case-insensitively."""
        if not text or not text.strip():
            return []
        needle = text.casefold()
        return [e for e in self.items if needle in (e.label or "").casefold()]

    # --- Hit testing ---

    def find_index_at(self, x: float, y: float, radius: float) -> int:
        """Lowest index within ``radius`` (canvas units) of (x, y), or -1."""
        return find_first_within(self.items, x, y, radius)

    def find_at(self, x: float, y: float, radius: float):
        """Lowest-index entity within ``radius`` of (x, y), or None."""
        index = self.find_index_at(x, y, radius)
        return self.items[index] if index >= 0 else None

    # --- Notifications ---

    def _reindex(self):
        for i, entity in enumerate(self.items):
            entity.index = i

    def refresh(self):
        """Request a full overlay resync, e.g. when a drag ends."""
        self._notify_changed()

    def count(self) -> int:
        return len(self.items)

    def _notify_changed(self, skip_resync: bool = False, count: bool = False):
        self.events.emit(
            AnnotationEvent(
                self.changed_event,
                {
                    "kind": self.kind,
                    "items": list(self.items),
                    "skip_resync": skip_resync,
                },
            )
        )
        if count:
            self.events.emit(
                AnnotationEvent(
                    self.count_event, {"kind": self.kind, "count": self.count()}
                )
            )


class PointStore(EntityStore):
    """Labeled points; ids are coerced to ``LETTER-NN`` on commit."""

    entity_cls = Point
    kind = EntityKind.POINT
    changed_event = EventType.POINTS_CHANGED
    count_event = EventType.POINT_COUNT_CHANGED

    def format_label(self, text: str) -> str:
        return format_label(text)

    def count(self) -> int:
        """Number of user points; markers are not counted."""
        return len([p for p in self.items if not p.is_marker])


class SpotStore(EntityStore):
    """Named spots; names are only trimmed on commit."""

    entity_cls = Spot
    kind = EntityKind.SPOT
    changed_event = EventType.SPOTS_CHANGED
    count_event = EventType.SPOT_COUNT_CHANGED
