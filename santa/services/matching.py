from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

import networkx as nx
from loguru import logger
from networkx.algorithms import bipartite

DEFAULT_RETRY_ATTEMPTS = 100


class AssignmentError(RuntimeError):
    pass


@dataclass(frozen=True)
class AssignmentPair:
    giver_id: Hashable
    receiver_id: Hashable


@dataclass(frozen=True)
class MatchingResult:
    success: bool
    assignments: List[AssignmentPair] = field(default_factory=list)

    def as_dict(self) -> Dict[Hashable, Hashable]:
        return {pair.giver_id: pair.receiver_id for pair in self.assignments}


def _build_forbidden(
    participant_ids: Sequence[Hashable],
    exclusions: Optional[Iterable[Tuple[Hashable, Hashable]]],
) -> Dict[Hashable, Set[Hashable]]:
    forbidden = {participant_id: {participant_id} for participant_id in participant_ids}
    for excluder_id, excluded_id in exclusions or []:
        if excluder_id in forbidden:
            forbidden[excluder_id].add(excluded_id)
    return forbidden


def _has_perfect_matching(
    givers: Sequence[Hashable],
    receivers: Sequence[Hashable],
    forbidden: Dict[Hashable, Set[Hashable]],
) -> bool:
    """Hopcroft-Karp over the giver/receiver bipartite graph.

    False proves that no complete assignment of ``givers`` to ``receivers``
    exists, whatever order a search uses.
    """
    if len(givers) != len(receivers):
        return False
    if not givers:
        return True

    top = [("giver", giver) for giver in givers]
    graph = nx.Graph()
    graph.add_nodes_from(top, bipartite=0)
    graph.add_nodes_from((("receiver", receiver) for receiver in receivers), bipartite=1)
    graph.add_edges_from(
        (("giver", giver), ("receiver", receiver))
        for giver in givers
        for receiver in receivers
        if receiver not in forbidden[giver]
    )
    matching = bipartite.hopcroft_karp_matching(graph, top_nodes=top)
    return len(matching) == 2 * len(givers)


class _BacktrackingSearch:
    """Depth-first search for one giver order and one receiver order.

    The partial assignment and the set of used receivers belong to a single
    run and are never shared between runs. A tentative pair is only explored
    further while the remaining givers can still all be matched, so the
    search never descends into a dead subtree.
    """

    def __init__(
        self,
        givers: Sequence[Hashable],
        receivers: Sequence[Hashable],
        forbidden: Dict[Hashable, Set[Hashable]],
    ) -> None:
        self.givers = givers
        self.receivers = receivers
        self.forbidden = forbidden
        self.assignments: List[AssignmentPair] = []
        self.used_receivers: Set[Hashable] = set()

    def run(self) -> Optional[List[AssignmentPair]]:
        if self._assign_from(0):
            return list(self.assignments)
        return None

    def _assign_from(self, index: int) -> bool:
        if index == len(self.givers):
            return True

        giver = self.givers[index]
        excluded = self.forbidden[giver]
        for receiver in self.receivers:
            if receiver in self.used_receivers or receiver in excluded:
                continue
            self.assignments.append(AssignmentPair(giver, receiver))
            self.used_receivers.add(receiver)
            if self._can_complete(index + 1) and self._assign_from(index + 1):
                return True
            self.assignments.pop()
            self.used_receivers.remove(receiver)
        return False

    def _can_complete(self, index: int) -> bool:
        remaining = [receiver for receiver in self.receivers if receiver not in self.used_receivers]
        return _has_perfect_matching(self.givers[index:], remaining, self.forbidden)


def compute_matching(
    participant_ids: Sequence[Hashable],
    exclusions: Optional[Iterable[Tuple[Hashable, Hashable]]] = None,
    rng: Optional[random.Random] = None,
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
) -> MatchingResult:
    """Pair every participant with exactly one receiver.

    Nobody gives to themselves and no ``(excluder, excluded)`` pair from
    ``exclusions`` is ever used. Constraint sets without any perfect
    giver/receiver matching are rejected before searching. The first pass is
    an exhaustive backtracking search in input order; when it fails, up to
    ``max_attempts`` further searches run with givers and receivers shuffled
    independently by ``rng``.

    An infeasible constraint set is reported as ``MatchingResult(success=False)``.
    ``AssignmentError`` is reserved for bad input: fewer than two participants
    or duplicate IDs.
    """
    participants = list(participant_ids)
    if len(participants) < 2:
        raise AssignmentError("At least 2 participants are required.")
    if len(set(participants)) != len(participants):
        raise AssignmentError("Participant IDs must be unique.")

    forbidden = _build_forbidden(participants, exclusions)
    log = logger.bind(participants=len(participants))

    if not _has_perfect_matching(participants, participants, forbidden):
        log.warning("Matching is infeasible: the exclusions leave no complete pairing")
        return MatchingResult(success=False)

    found = _BacktrackingSearch(participants, participants, forbidden).run()
    if found is not None:
        log.debug("Matching found by ordered search")
        return MatchingResult(success=True, assignments=found)

    if rng is None:
        rng = random.Random()

    for attempt in range(1, max_attempts + 1):
        givers = list(participants)
        receivers = list(participants)
        rng.shuffle(givers)
        rng.shuffle(receivers)
        found = _BacktrackingSearch(givers, receivers, forbidden).run()
        if found is not None:
            log.bind(attempt=attempt).debug("Matching found by shuffled search")
            return MatchingResult(success=True, assignments=found)

    log.bind(attempts=max_attempts).warning("No valid matching found")
    return MatchingResult(success=False)


def is_valid_matching(
    participant_ids: Sequence[Hashable],
    exclusions: Optional[Iterable[Tuple[Hashable, Hashable]]],
    assignments: Sequence[AssignmentPair],
) -> bool:
    participants = list(participant_ids)
    if len(participants) < 2 or len(assignments) != len(participants):
        return False

    givers = [pair.giver_id for pair in assignments]
    receivers = [pair.receiver_id for pair in assignments]
    if len(set(givers)) != len(givers) or len(set(receivers)) != len(receivers):
        return False
    if set(givers) != set(participants) or set(receivers) != set(participants):
        return False

    forbidden = _build_forbidden(participants, exclusions)
    return all(pair.receiver_id not in forbidden[pair.giver_id] for pair in assignments)
