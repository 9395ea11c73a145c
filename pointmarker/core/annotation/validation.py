"""
Label formatting and advisory validation.

Route endpoints are free text resolved against two disjoint namespaces:
point ids and spot names. Nothing here blocks an edit; problems are
reported as :class:`ValidationIssue` objects through the
``VALIDATION_FEEDBACK`` event and left for the UI to present.
"""

import logging
import re
import unicodedata
import dataclasses
from dataclasses import dataclass
from enum import Enum
from gettext import gettext as _
from typing import TYPE_CHECKING, Any, List, Optional, Tuple

from .events import AnnotationEvent, EventEmitter, EventType
from .state import Area, EntityKind, Route

if TYPE_CHECKING:
    from .routes import RouteModel
    from .stores import PointStore, SpotStore

logger = logging.getLogger(__name__)

# Hyphen-like characters NFKC leaves untouched
_HYPHEN_VARIANTS = str.maketrans({c: "-" for c in "‐‑‒–—―−"})

LOOSE_LABEL_RE = re.compile(r"^([A-Z])-?(\d{1,2})$")
STRICT_LABEL_RE = re.compile(r"^[A-Z]-\d{2}$")


def normalize_label(text: str) -> str:
    """
    Normalize free text typed into a label or endpoint field.

    Full-width letters, digits and hyphen variants become ASCII, the text
    is trimmed and ASCII letters are upper-cased.
    """
    if not text:
        return ""
    converted = unicodedata.normalize("NFKC", text).translate(_HYPHEN_VARIANTS)
    return "".join(c.upper() if "a" <= c <= "z" else c for c in converted.strip())


def coerce_label(text: str) -> Optional[str]:
    """
    Coerce loosely formatted text to the canonical ``LETTER-NN`` form.

    Accepts one letter, an optional hyphen and one or two digits
    (``a1``, ``A-1``, ``A01``). Returns None when the text does not fit.
    """
    match = LOOSE_LABEL_RE.match(normalize_label(text))
    if not match:
        return None
    letter, digits = match.groups()
    return f"{letter}-{int(digits):02d}"


def format_label(text: str) -> str:
    """
    Format a point id on commit.

    Blank input is returned unchanged; otherwise the canonical form when
    coercion applies, else the normalized text.
    """
    if not text or not text.strip():
        return text
    coerced = coerce_label(text)
    return coerced if coerced is not None else normalize_label(text)


def is_strict_label_format(text: str) -> bool:
    """True for blank text or text already in the strict ``LETTER-NN`` form."""
    if not text or not text.strip():
        return True
    return bool(STRICT_LABEL_RE.match(text))


class IssueKind(str, Enum):
    AMBIGUOUS_REFERENCE = "ambiguous_reference"
    UNRESOLVED_ENDPOINT = "unresolved_endpoint"
    DUPLICATE_ENDPOINT = "duplicate_endpoint"
    MISSING_ENDPOINT = "missing_endpoint"
    DUPLICATE_LABEL = "duplicate_label"
    NO_WAYPOINTS = "no_waypoints"
    NO_SELECTION = "no_selection"
    MISSING_NAME = "missing_name"
    TOO_FEW_VERTICES = "too_few_vertices"


@dataclass
class ValidationIssue:
    """An offending field plus a human-readable reason."""

    issue_kind: IssueKind
    entity_kind: EntityKind
    index: int
    reason: str
    field: Optional[str] = None
    matches: List[str] = dataclasses.field(default_factory=list)

    @property
    def field_id(self) -> str:
        parts = [self.entity_kind.value, str(self.index)]
        if self.field:
            parts.append(self.field)
        return ":".join(parts)


@dataclass
class DuplicateConflict:
    """
    An existing entity and the entity that collides with it.

    Presentation layers build their update/rename/keep/cancel chooser
    from this.
    """

    kind: EntityKind
    label: str
    existing: Any
    attempted: Any
    existing_index: Optional[int] = None
    attempted_index: Optional[int] = None


class EndpointStatus(str, Enum):
    EMPTY = "empty"
    EXACT_SPOT = "exact_spot"
    EXACT_POINT = "exact_point"
    PARTIAL_SPOT = "partial_spot"
    COERCED = "coerced"
    VERBATIM = "verbatim"
    AMBIGUOUS = "ambiguous"


@dataclass
class EndpointResolution:
    """Outcome of resolving endpoint text typed into a route field."""

    value: str
    status: EndpointStatus
    matches: List[str] = dataclasses.field(default_factory=list)

    @property
    def is_ambiguous(self) -> bool:
        return self.status == EndpointStatus.AMBIGUOUS


class ValidationEngine:
    """
    Resolves route endpoints and reports advisory validation issues.

    Reads point ids and spot names from the stores; never mutates them.
    """

    def __init__(
        self,
        points: "PointStore",
        spots: "SpotStore",
        routes: Optional["RouteModel"] = None,
        events: Optional[EventEmitter] = None,
    ):
        self.points = points
        self.spots = spots
        self.routes = routes
        self.events = events if events is not None else EventEmitter()

    # --- Endpoint resolution ---

    def resolve_endpoint(self, text: str) -> EndpointResolution:
        """
        Resolve endpoint text on commit.

        An exact spot name or point id wins. Otherwise the normalized text
        is partially matched against spot names: one match adopts that
        spot's name, several keep the text verbatim (ambiguous), none fall
        back to ``LETTER-NN`` coercion or to the verbatim text.
        """
        raw = (text or "").strip()
        if not raw:
            return EndpointResolution("", EndpointStatus.EMPTY)

        normalized = normalize_label(raw)
        names = self.spots.registered_labels()

        exact = [n for n in names if n == raw or n == normalized]
        if not exact:
            exact = [n for n in names if n.casefold() == normalized.casefold()]
        if len(set(exact)) == 1:
            return EndpointResolution(exact[0], EndpointStatus.EXACT_SPOT, [exact[0]])

        point_ids = self.points.registered_labels()
        if raw in point_ids or normalized in point_ids:
            value = raw if raw in point_ids else normalized
            return EndpointResolution(value, EndpointStatus.EXACT_POINT, [value])

        partial = [s.name for s in self.spots.find_by_partial_label(normalized)]
        if len(partial) == 1:
            return EndpointResolution(partial[0], EndpointStatus.PARTIAL_SPOT, partial)
        if len(partial) > 1:
            logger.debug(f"Endpoint '{raw}' matches {len(partial)} spots")
            return EndpointResolution(raw, EndpointStatus.AMBIGUOUS, partial)

        coerced = coerce_label(normalized)
        if coerced is not None:
            return EndpointResolution(coerced, EndpointStatus.COERCED)
        return EndpointResolution(raw, EndpointStatus.VERBATIM)

    def check_endpoint(
        self, value: str, route_index: int = -1, field_name: Optional[str] = None
    ) -> Optional[ValidationIssue]:
        """
        Check that an endpoint refers to a registered point id or spot name.

        Returns:
            The issue found, or None when the endpoint is blank or valid
        """
        value = (value or "").strip()
        if not value:
            return None
        if value in self.points.registered_labels():
            return None
        if value in self.spots.registered_labels():
            return None

        partial = [s.name for s in self.spots.find_by_partial_label(value)]
        if len(partial) == 1:
            # Commit adopts a single match, so a stored partial name is stale
            return ValidationIssue(
                IssueKind.UNRESOLVED_ENDPOINT,
                EntityKind.ROUTE,
                route_index,
                _('Did you mean "{name}"?').format(name=partial[0]),
                field=field_name,
                matches=partial,
            )
        if len(partial) > 1:
            return ValidationIssue(
                IssueKind.AMBIGUOUS_REFERENCE,
                EntityKind.ROUTE,
                route_index,
                _("Several spot names match: {names}").format(names=", ".join(partial)),
                field=field_name,
                matches=partial,
            )

        if is_strict_label_format(value):
            reason = _('Point "{value}" was not found').format(value=value)
        else:
            reason = _("No matching point or spot was found")
        return ValidationIssue(
            IssueKind.UNRESOLVED_ENDPOINT,
            EntityKind.ROUTE,
            route_index,
            reason,
            field=field_name,
        )

    def check_route_endpoints(self, route: Route, route_index: int) -> List[ValidationIssue]:
        """Check both endpoints of a route, including start == end."""
        issues = []
        for field_name, value in (("start", route.start_ref), ("end", route.end_ref)):
            issue = self.check_endpoint(value, route_index, field_name)
            if issue is not None:
                issues.append(issue)

        start, end = route.start_ref.strip(), route.end_ref.strip()
        if start and end and start == end:
            reason = _("Start and end are set to the same id")
            for field_name in ("start", "end"):
                issues.append(
                    ValidationIssue(
                        IssueKind.DUPLICATE_ENDPOINT,
                        EntityKind.ROUTE,
                        route_index,
                        reason,
                        field=field_name,
                    )
                )
        return issues

    def validate_route_endpoints(self, route_index: Optional[int] = None) -> List[ValidationIssue]:
        """
        Re-validate both endpoints of a route and publish the feedback.

        Args:
            route_index: Route to check; defaults to the selected route
        """
        if self.routes is None:
            raise ValueError("ValidationEngine has no RouteModel attached")
        if route_index is None:
            route_index = self.routes.selected_index
        route = self.routes.get(route_index)
        issues = [] if route is None else self.check_route_endpoints(route, route_index)
        self.publish("route_endpoints", issues)
        return issues

    # --- Labels ---

    def _store_for(self, kind: EntityKind):
        if kind == EntityKind.POINT:
            return self.points
        if kind == EntityKind.SPOT:
            return self.spots
        raise ValueError(f"No label store for kind {kind}")

    def find_duplicate_labels(
        self, kind: EntityKind
    ) -> Tuple[List[ValidationIssue], List[DuplicateConflict]]:
        """
        Find entities sharing a non-empty label.

        Each repeat of a label yields an issue and a conflict pairing it
        with the first entity holding that label.
        """
        store = self._store_for(kind)
        first_seen = {}
        reported = set()
        issues = []
        conflicts = []
        for index, entity in enumerate(store.items):
            label = entity.label.strip()
            if not label:
                continue
            if label not in first_seen:
                first_seen[label] = index
                continue
            existing_index = first_seen[label]
            conflicts.append(
                DuplicateConflict(
                    kind,
                    label,
                    store.items[existing_index],
                    entity,
                    existing_index=existing_index,
                    attempted_index=index,
                )
            )
            for offending in (existing_index, index):
                if offending in reported:
                    continue
                reported.add(offending)
                issues.append(
                    ValidationIssue(
                        IssueKind.DUPLICATE_LABEL,
                        kind,
                        offending,
                        _('Duplicate label: "{label}"').format(label=label),
                        field=entity.LABEL_FIELD,
                    )
                )
        return issues, conflicts

    def check_duplicate_labels(self, kind: EntityKind) -> List[ValidationIssue]:
        """Check label uniqueness for a store and publish the feedback."""
        issues, conflicts = self.find_duplicate_labels(kind)
        self.publish(kind.value, issues)
        if conflicts:
            self.events.emit(
                AnnotationEvent(
                    EventType.DUPLICATE_DETECTED,
                    {"kind": kind, "conflicts": conflicts},
                )
            )
        return issues

    # --- Save-time checks ---

    def validate_route_for_save(self, route: Route, route_index: int = -1) -> List[ValidationIssue]:
        """
        Check that a route is complete enough to be persisted.

        Both endpoints must name a registered point id or spot name;
        ambiguous or partial text blocks the save.
        """
        issues = self.check_route_endpoints(route, route_index)
        for field_name, value in (("start", route.start_ref), ("end", route.end_ref)):
            if not value.strip():
                issues.append(
                    ValidationIssue(
                        IssueKind.MISSING_ENDPOINT,
                        EntityKind.ROUTE,
                        route_index,
                        _("Set both the start and the end point"),
                        field=field_name,
                    )
                )
        if not route.waypoints:
            issues.append(
                ValidationIssue(
                    IssueKind.NO_WAYPOINTS,
                    EntityKind.ROUTE,
                    route_index,
                    _("A route needs at least one waypoint"),
                )
            )
        return issues

    def validate_area(self, area: Optional[Area], area_index: int = -1) -> List[ValidationIssue]:
        """Check that an area has a name and at least three vertices."""
        if area is None:
            return [
                ValidationIssue(
                    IssueKind.NO_SELECTION,
                    EntityKind.AREA,
                    area_index,
                    _("No area is selected"),
                )
            ]
        issues = []
        if not area.area_name.strip():
            issues.append(
                ValidationIssue(
                    IssueKind.MISSING_NAME,
                    EntityKind.AREA,
                    area_index,
                    _("Enter an area name"),
                    field="area_name",
                )
            )
        if not area.is_closed:
            issues.append(
                ValidationIssue(
                    IssueKind.TOO_FEW_VERTICES,
                    EntityKind.AREA,
                    area_index,
                    _("An area needs at least three vertices"),
                )
            )
        return issues

    def publish(self, scope: str, issues: List[ValidationIssue]):
        self.events.emit(
            AnnotationEvent(
                EventType.VALIDATION_FEEDBACK,
                {"scope": scope, "issues": issues},
            )
        )
