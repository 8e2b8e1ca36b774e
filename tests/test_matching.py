import itertools
import random

import pytest

from santa.services import matching
from santa.services.exclusions import would_create_cycle
from santa.services.matching import (
    AssignmentError,
    AssignmentPair,
    compute_matching,
    is_valid_matching,
)


class CountingRandom(random.Random):
    def __init__(self, seed):
        super().__init__(seed)
        self.shuffles = 0

    def shuffle(self, x):
        self.shuffles += 1
        super().shuffle(x)


def assert_valid(participants, exclusions, result):
    assert result.success
    givers = [pair.giver_id for pair in result.assignments]
    receivers = [pair.receiver_id for pair in result.assignments]
    assert sorted(givers) == sorted(participants)
    assert sorted(receivers) == sorted(participants)
    assert all(pair.giver_id != pair.receiver_id for pair in result.assignments)
    assert not {(pair.giver_id, pair.receiver_id) for pair in result.assignments} & set(exclusions)


def test_matching_basic_bijection():
    participants = ["a", "b", "c", "d"]
    result = compute_matching(participants)
    assert_valid(participants, [], result)
    assert len(result.assignments) == 4


def test_matching_two_people_swap():
    result = compute_matching(["A", "B"])
    assert result.success
    assert result.as_dict() == {"A": "B", "B": "A"}


def test_matching_mutual_exclusion_of_two_fails():
    result = compute_matching(["A", "B"], [("A", "B"), ("B", "A")])
    assert not result.success
    assert result.assignments == []


def test_matching_five_people_one_exclusion():
    participants = ["A", "B", "C", "D", "E"]
    exclusions = [("A", "B")]
    result = compute_matching(participants, exclusions)
    assert_valid(participants, exclusions, result)
    assert AssignmentPair("A", "B") not in result.assignments
    assert len(result.assignments) == 5


def test_matching_exclusion_cycle_is_still_feasible():
    participants = ["A", "B", "C"]
    exclusions = [("A", "B"), ("B", "C"), ("C", "A")]
    result = compute_matching(participants, exclusions)
    assert_valid(participants, exclusions, result)
    assert result.as_dict() == {"A": "C", "B": "A", "C": "B"}


def test_matching_ordered_search_is_deterministic():
    participants = [1, 2, 3, 4, 5]
    first = compute_matching(participants, [(1, 2)], rng=random.Random(1))
    second = compute_matching(participants, [(1, 2)], rng=random.Random(2))
    assert first == second


def test_matching_rejects_pigeonhole_without_searching():
    # s1, s2 and s3 may only give to s1 or s2
    participants = [f"p{index}" for index in range(9)] + ["s1", "s2", "s3"]
    exclusions = []
    for giver in ("s1", "s2", "s3"):
        for receiver in participants:
            if receiver not in ("s1", "s2", giver):
                assert not would_create_cycle(exclusions, giver, receiver)
                exclusions.append((giver, receiver))

    rng = CountingRandom(5)
    result = compute_matching(participants, exclusions, rng=rng)
    assert not result.success
    assert rng.shuffles == 0


def test_matching_prunes_dead_ends():
    # late givers can only use receivers the early givers grab first
    participants = [f"p{index}" for index in range(12)] + ["s1", "s2", "s3"]
    exclusions = [
        (giver, receiver)
        for giver in ("s1", "s2", "s3")
        for receiver in participants
        if receiver not in ("p0", "p1", "p2")
    ]
    result = compute_matching(participants, exclusions, max_attempts=0)
    assert_valid(participants, exclusions, result)
    assert {result.as_dict()[giver] for giver in ("s1", "s2", "s3")} == {"p0", "p1", "p2"}


def test_matching_retries_shuffle_givers_and_receivers_separately(monkeypatch):
    runs = []
    search = matching._BacktrackingSearch.run

    def fail_first_three(self):
        runs.append(list(self.givers))
        return None if len(runs) <= 3 else search(self)

    monkeypatch.setattr(matching._BacktrackingSearch, "run", fail_first_three)
    participants = ["A", "B", "C", "D"]
    rng = CountingRandom(7)
    result = compute_matching(participants, [("A", "B")], rng=rng, max_attempts=10)

    assert_valid(participants, [("A", "B")], result)
    assert runs[0] == participants
    assert len(runs) == 4
    assert rng.shuffles == 6


def test_matching_gives_up_after_retry_budget(monkeypatch):
    monkeypatch.setattr(matching._BacktrackingSearch, "run", lambda self: None)
    rng = CountingRandom(7)
    result = compute_matching(["A", "B", "C"], rng=rng, max_attempts=25)
    assert not result.success
    assert rng.shuffles == 50


def test_matching_starved_participant_skips_search():
    participants = ["A", "B", "C", "D"]
    exclusions = [("A", "B"), ("A", "C"), ("A", "D")]
    rng = CountingRandom(3)
    result = compute_matching(participants, exclusions, rng=rng)
    assert not result.success
    assert rng.shuffles == 0


def test_matching_unreachable_receiver_is_infeasible():
    participants = ["A", "B", "C"]
    exclusions = [("A", "C"), ("B", "C")]
    assert not compute_matching(participants, exclusions).success


def test_matching_ignores_exclusions_for_unknown_ids():
    result = compute_matching(["A", "B"], [("X", "A"), ("A", "Y")])
    assert result.as_dict() == {"A": "B", "B": "A"}


def test_matching_fails_for_too_few_participants():
    with pytest.raises(AssignmentError):
        compute_matching(["A"])
    with pytest.raises(AssignmentError):
        compute_matching([])


def test_matching_rejects_duplicate_participants():
    with pytest.raises(AssignmentError):
        compute_matching(["A", "B", "A"])


@pytest.mark.parametrize("seed", range(40))
def test_matching_agrees_with_brute_force(seed):
    rng = random.Random(seed)
    participants = list(range(6))
    candidate_pairs = [(g, r) for g in participants for r in participants if g != r]
    exclusions = rng.sample(candidate_pairs, rng.randint(0, 18))

    feasible = any(
        all(g != r and (g, r) not in exclusions for g, r in zip(participants, permutation))
        for permutation in itertools.permutations(participants)
    )
    result = compute_matching(participants, exclusions, rng=random.Random(seed))

    assert result.success == feasible
    if feasible:
        assert_valid(participants, exclusions, result)
        assert is_valid_matching(participants, exclusions, result.assignments)


def test_is_valid_matching_rejects_broken_results():
    participants = ["A", "B", "C"]
    good = [AssignmentPair("A", "B"), AssignmentPair("B", "C"), AssignmentPair("C", "A")]
    assert is_valid_matching(participants, [], good)

    repeated_receiver = [AssignmentPair("A", "B"), AssignmentPair("B", "C"), AssignmentPair("C", "B")]
    assert not is_valid_matching(participants, [], repeated_receiver)

    self_gift = [AssignmentPair("A", "A"), AssignmentPair("B", "C"), AssignmentPair("C", "B")]
    assert not is_valid_matching(participants, [], self_gift)

    assert not is_valid_matching(participants, [("A", "B")], good)
    assert not is_valid_matching(participants, [], good[:2])
