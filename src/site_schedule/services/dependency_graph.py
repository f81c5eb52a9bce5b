"""
Dependency graph analyzer: predecessors/successors, start eligibility,
earliest/latest start, total float and zero-float critical path.

Built once over a ScheduleSnapshot. Dependencies with an unknown endpoint are
skipped. Items on a dependency cycle raise CyclicDependencyError from the
float queries; every other item still gets results.
"""

import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Union

from site_schedule.services.schedule_models import (
    DependencyType,
    ScheduleDependency,
    ScheduleItem,
    ScheduleSnapshot,
    ceil_days,
)
from site_schedule.services.temporal_analytics import duration

logger = logging.getLogger(__name__)

ItemRef = Union[ScheduleItem, str]


class CyclicDependencyError(ValueError):
    """Raised for float/critical-path queries on an item that sits on a dependency cycle."""

    def __init__(self, item_id: str) -> None:
        super().__init__(f"item {item_id} is part of a dependency cycle")
        self.item_id = item_id


class DependencyGraph:
    def __init__(self, snapshot: ScheduleSnapshot) -> None:
        self._items: dict[str, ScheduleItem] = snapshot.item_by_id()
        self._incoming: dict[str, list[ScheduleDependency]] = {tid: [] for tid in self._items}
        self._outgoing: dict[str, list[ScheduleDependency]] = {tid: [] for tid in self._items}
        self._dangling: list[ScheduleDependency] = []

        for dep in snapshot.dependencies:
            if dep.from_id not in self._items or dep.to_id not in self._items:
                self._dangling.append(dep)
                continue
            self._incoming[dep.to_id].append(dep)
            self._outgoing[dep.from_id].append(dep)

        self._topo_order, self._cyclic = self._analyze_cycles()
        if self._cyclic:
            logger.warning(
                "dependency_graph: %s item(s) on dependency cycles: %s",
                len(self._cyclic),
                ", ".join(sorted(self._cyclic)),
            )

    def _analyze_cycles(self) -> tuple[list[str], set[str]]:
        """
        Kahn's algorithm in input order. Nodes left over after trimming sources
        (forward) and sinks (reverse) are the ones on or between cycles.
        """
        order = self._kahn(self._incoming, self._outgoing, lambda d: d.to_id)
        if len(order) == len(self._items):
            return order, set()
        reverse_order = self._kahn(self._outgoing, self._incoming, lambda d: d.from_id)
        cyclic = set(self._items) - set(order) - set(reverse_order)
        placed = set(order)
        # Items downstream of a cycle have no topological slot; keep them in input order
        order.extend(tid for tid in self._items if tid not in placed and tid not in cyclic)
        return order, cyclic

    def _kahn(self, inbound, outbound, target) -> list[str]:
        in_degree = {tid: len(inbound[tid]) for tid in self._items}
        queue = deque(tid for tid in self._items if in_degree[tid] == 0)
        order: list[str] = []
        while queue:
            n = queue.popleft()
            order.append(n)
            for dep in outbound[n]:
                m = target(dep)
                in_degree[m] -= 1
                if in_degree[m] == 0:
                    queue.append(m)
        return order

    def _resolve(self, item: ItemRef) -> ScheduleItem:
        item_id = item if isinstance(item, str) else item.id
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(item_id) from None

    def _ensure_acyclic(self, item: ScheduleItem) -> None:
        if item.id in self._cyclic:
            raise CyclicDependencyError(item.id)

    @property
    def items(self) -> list[ScheduleItem]:
        return list(self._items.values())

    @property
    def has_cycles(self) -> bool:
        return bool(self._cyclic)

    def cyclic_item_ids(self) -> set[str]:
        return set(self._cyclic)

    def is_cyclic(self, item: ItemRef) -> bool:
        return self._resolve(item).id in self._cyclic

    def dangling_dependencies(self) -> list[ScheduleDependency]:
        return list(self._dangling)

    def topological_order(self) -> list[str]:
        """Item ids in dependency order. Cyclic items are omitted."""
        return list(self._topo_order)

    def predecessors_of(self, item: ItemRef) -> list[ScheduleDependency]:
        """Dependencies pointing at the item (`to == item.id`)."""
        return list(self._incoming[self._resolve(item).id])

    def successors_of(self, item: ItemRef) -> list[ScheduleDependency]:
        """Dependencies leaving the item (`from == item.id`)."""
        return list(self._outgoing[self._resolve(item).id])

    def can_start(self, item: ItemRef) -> bool:
        """
        FS needs the predecessor complete; SS needs it begun.
        FF and SF constrain dates only and never gate the start.
        """
        for dep in self.predecessors_of(item):
            pred = self._items[dep.from_id]
            if dep.type == DependencyType.FINISH_TO_START and pred.progress < 100:
                return False
            if dep.type == DependencyType.START_TO_START and pred.progress == 0:
                return False
        return True

    def blocking_predecessors(self, item: ItemRef) -> list[ScheduleItem]:
        """Predecessor items currently preventing the item from starting."""
        blocking: list[ScheduleItem] = []
        for dep in self.predecessors_of(item):
            pred = self._items[dep.from_id]
            if (dep.type == DependencyType.FINISH_TO_START and pred.progress < 100) or (
                dep.type == DependencyType.START_TO_START and pred.progress == 0
            ):
                blocking.append(pred)
        return blocking

    def earliest_start(self, item: ItemRef) -> datetime:
        """Latest bound imposed by any predecessor; the item's own start when it has none."""
        target = self._resolve(item)
        self._ensure_acyclic(target)
        preds = self._incoming[target.id]
        if not preds:
            return target.start
        bounds = []
        for dep in preds:
            pred = self._items[dep.from_id]
            bounds.append(pred.start if dep.type == DependencyType.START_TO_START else pred.end)
        return max(bounds)

    def latest_start(self, item: ItemRef) -> datetime:
        """Earliest start-by date that delays no successor; the item's own end when it has none."""
        target = self._resolve(item)
        self._ensure_acyclic(target)
        succs = self._outgoing[target.id]
        if not succs:
            return target.end
        own_duration = timedelta(days=duration(target))
        bounds = []
        for dep in succs:
            succ = self._items[dep.to_id]
            if dep.type in (DependencyType.FINISH_TO_START, DependencyType.START_TO_START):
                boundary = succ.start
            else:
                boundary = succ.end
            bounds.append(boundary - own_duration)
        return min(bounds)

    def total_float(self, item: ItemRef) -> int:
        """Slack in whole days, never negative."""
        return max(0, ceil_days(self.latest_start(item) - self.earliest_start(item)))

    def is_on_critical_path(self, item: ItemRef) -> bool:
        return self.total_float(item) == 0

    def critical_path(self) -> list[str]:
        """Ids of all zero-float items in dependency order. Cyclic items are excluded."""
        return [tid for tid in self._topo_order if self.total_float(tid) == 0]

    def upstream_ids(self, item: ItemRef) -> set[str]:
        """All transitive predecessors (iterative, safe on cycles)."""
        return self._walk(self._resolve(item).id, self._incoming, lambda d: d.from_id)

    def downstream_ids(self, item: ItemRef) -> set[str]:
        """All transitive successors (iterative, safe on cycles)."""
        return self._walk(self._resolve(item).id, self._outgoing, lambda d: d.to_id)

    def _walk(self, start_id: str, edges, target) -> set[str]:
        seen: set[str] = set()
        stack = [start_id]
        while stack:
            n = stack.pop()
            for dep in edges[n]:
                m = target(dep)
                if m not in seen and m != start_id:
                    seen.add(m)
                    stack.append(m)
        return seen
