"""Change plans: previewable, dependency-linked document mutations.

Tasks propose changes together with the entity keys each change produces and
consumes. The builder turns proposals into ``Change`` nodes, links every consumer
to the producer of its key, and orders the result so that dependencies come
first. Change ids derive from collection, document id and action, so rebuilding
a plan over unchanged data yields the same ids and a stored selection still
applies.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from .errors import ValidationError
from .graph import DependencyGraph

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from hygienist.domain.model import ChangeAction, Collection, Fields

    from .snapshot import Snapshot

log = logging.getLogger(__name__)


def change_id(collection: Collection, document_id: str, action: ChangeAction) -> str:
    return f"{action}:{collection}/{document_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class Change:
    id: str
    collection: Collection
    document_id: str
    action: ChangeAction
    data: Mapping[str, Any] = field(hash=False)
    label: str = ""
    before: Mapping[str, Any] | None = field(default=None, hash=False)
    depends_on: tuple[str, ...] = ()

    @property
    def creates(self) -> bool:
        """Upserts without a prior document create a new one."""

        return self.before is None


@dataclass(frozen=True, slots=True, kw_only=True)
class ProposedChange:
    """A task's desired write before dependency linking."""

    collection: Collection
    document_id: str
    action: ChangeAction
    data: Mapping[str, Any] = field(hash=False)
    label: str = ""
    before: Mapping[str, Any] | None = field(default=None, hash=False)
    produces: tuple[str, ...] = ()
    consumes: tuple[str, ...] = ()

    @property
    def id(self) -> str:
        return change_id(self.collection, self.document_id, self.action)


@dataclass(frozen=True, slots=True, kw_only=True)
class ChangePlan:
    task: str
    scope: str | None = None
    changes: tuple[Change, ...] = ()

    @property
    def depends_on(self) -> dict[str, tuple[str, ...]]:
        return {change.id: change.depends_on for change in self.changes}

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(change.id for change in self.changes)

    def get(self, change_id: str) -> Change:
        for change in self.changes:
            if change.id == change_id:
                return change
        raise ValidationError(f"Plan {self.task!r} has no change {change_id!r}")

    def graph(self) -> DependencyGraph:
        return DependencyGraph.from_changes(self.changes)


class PlanTask(Protocol):
    """A named backfill that proposes changes for a snapshot."""

    name: str

    def propose(self, snapshot: Snapshot, scope: str | None) -> list[ProposedChange]: ...


def diff_fields(current: Mapping[str, Any] | None, desired: Mapping[str, Any]) -> Fields:
    """Fields of ``desired`` whose value differs from ``current``."""

    if current is None:
        return dict(desired)
    return {name: value for name, value in desired.items() if current.get(name) != value}


def build_plan(
    task: str,
    proposals: Iterable[ProposedChange],
    *,
    scope: str | None = None,
) -> ChangePlan:
    """Link proposals through their produced/consumed keys and order them."""

    accepted: list[ProposedChange] = []
    seen: set[str] = set()
    for proposal in proposals:
        if not proposal.data:
            continue
        if proposal.id in seen:
            raise ValidationError(f"Task {task!r} proposed {proposal.id!r} twice")
        seen.add(proposal.id)
        accepted.append(proposal)

    producers: dict[str, str] = {}
    for proposal in accepted:
        for key in proposal.produces:
            existing = producers.setdefault(key, proposal.id)
            if existing != proposal.id:
                raise ValidationError(
                    f"Key {key!r} is produced by both {existing!r} and {proposal.id!r}"
                )

    changes = [
        Change(
            id=proposal.id,
            collection=proposal.collection,
            document_id=proposal.document_id,
            action=proposal.action,
            data=proposal.data,
            label=proposal.label,
            before=proposal.before,
            depends_on=tuple(
                sorted(
                    {
                        producers[key]
                        for key in proposal.consumes
                        if key in producers and producers[key] != proposal.id
                    }
                )
            ),
        )
        for proposal in accepted
    ]
    graph = DependencyGraph.from_changes(changes)
    by_id = {change.id: change for change in changes}
    ordered = tuple(by_id[node] for node in graph.topological_order())
    log.info(
        "Built plan %s scope=%s: %s changes, %s with dependencies",
        task,
        scope or "all",
        len(ordered),
        sum(1 for change in ordered if change.depends_on),
    )
    return ChangePlan(task=task, scope=scope, changes=ordered)
