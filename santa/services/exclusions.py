from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Tuple

CYCLE_ARROW = " → "


@dataclass(frozen=True)
class ParticipantRef:
    id: Hashable
    name: str


@dataclass(frozen=True)
class FeasibilityReport:
    valid: bool
    issues: List[str] = field(default_factory=list)


ExclusionGraph = Dict[Hashable, List[Hashable]]


def build_exclusion_graph(exclusions: Iterable[Tuple[Hashable, Hashable]]) -> ExclusionGraph:
    graph: ExclusionGraph = {}
    for excluder_id, excluded_id in exclusions:
        neighbors = graph.setdefault(excluder_id, [])
        if excluded_id not in neighbors:
            neighbors.append(excluded_id)
    return graph


def find_cycles(graph: ExclusionGraph, node_order: Iterable[Hashable]) -> List[List[Hashable]]:
    """Return the cycles met while walking ``graph`` depth-first.

    Each cycle starts and ends with the same node, e.g. ``[a, b, a]``. Every
    node is expanded at most once, so a cycle is reported by the walk that
    first closes it.
    """
    cycles: List[List[Hashable]] = []
    visited = set()
    on_stack = set()
    path: List[Hashable] = []

    def visit(node: Hashable) -> None:
        if node in on_stack:
            cycles.append(path[path.index(node):] + [node])
            return
        if node in visited:
            return

        visited.add(node)
        on_stack.add(node)
        path.append(node)
        for neighbor in graph.get(node, []):
            visit(neighbor)
        on_stack.remove(node)
        path.pop()

    for node in node_order:
        if node not in visited:
            visit(node)
    return cycles


def has_cycle_from(graph: ExclusionGraph, start: Hashable) -> bool:
    visited = set()
    on_stack = set()

    def visit(node: Hashable) -> bool:
        if node in on_stack:
            return True
        if node in visited:
            return False

        visited.add(node)
        on_stack.add(node)
        for neighbor in graph.get(node, []):
            if visit(neighbor):
                return True
        on_stack.remove(node)
        return False

    return visit(start)


def would_create_cycle(
    exclusions: Iterable[Tuple[Hashable, Hashable]],
    excluder_id: Hashable,
    excluded_id: Hashable,
) -> bool:
    """Check whether adding ``excluder_id -> excluded_id`` leaves a cycle reachable from the excluder."""
    candidate = list(exclusions) + [(excluder_id, excluded_id)]
    return has_cycle_from(build_exclusion_graph(candidate), excluder_id)


def analyze(
    participants: Iterable[ParticipantRef],
    exclusions: Iterable[Tuple[Hashable, Hashable]],
) -> FeasibilityReport:
    """Describe suspicious exclusion patterns for an exchange.

    Cycles are listed first, then participants left without any possible
    receiver. Only the latter rules out a draw; cycles are informational.
    """
    participants = list(participants)
    names = {participant.id: participant.name for participant in participants}
    graph = build_exclusion_graph(exclusions)

    issues: List[str] = []
    for cycle in find_cycles(graph, [participant.id for participant in participants]):
        chain = CYCLE_ARROW.join(names.get(node, str(node)) for node in cycle)
        issues.append(f"Circular exclusion detected: {chain}")

    for participant in participants:
        excluded = set(graph.get(participant.id, []))
        has_receiver = any(
            other.id != participant.id and other.id not in excluded for other in participants
        )
        if not has_receiver:
            issues.append(f"{participant.name} has no valid gift recipients")

    return FeasibilityReport(valid=not issues, issues=issues)
