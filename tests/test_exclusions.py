from santa.services.exclusions import (
    ParticipantRef,
    analyze,
    build_exclusion_graph,
    find_cycles,
    would_create_cycle,
)
from santa.services.matching import compute_matching

ALICE = ParticipantRef("a", "Alice")
BOB = ParticipantRef("b", "Bob")
CAROL = ParticipantRef("c", "Carol")
DAVE = ParticipantRef("d", "Dave")


def cycle_issues(report):
    return [issue for issue in report.issues if issue.startswith("Circular exclusion detected")]


def test_analyze_without_exclusions_is_valid():
    report = analyze([ALICE, BOB, CAROL], [])
    assert report.valid
    assert report.issues == []


def test_analyze_empty_input_is_valid():
    report = analyze([], [])
    assert report.valid
    assert report.issues == []


def test_analyze_reports_mutual_exclusion_cycle():
    exclusions = [("a", "b"), ("b", "a")]
    report = analyze([ALICE, BOB], exclusions)

    assert not report.valid
    cycles = cycle_issues(report)
    assert cycles == ["Circular exclusion detected: Alice → Bob → Alice"]
    assert not compute_matching(["a", "b"], exclusions).success


def test_analyze_reports_starvation():
    exclusions = [("a", "b"), ("a", "c"), ("a", "d")]
    report = analyze([ALICE, BOB, CAROL, DAVE], exclusions)

    assert not report.valid
    assert report.issues == ["Alice has no valid gift recipients"]
    assert not any("Dave" in issue for issue in report.issues)


def test_analyze_lists_cycles_before_starvation():
    exclusions = [("a", "b"), ("b", "a")]
    report = analyze([ALICE, BOB], exclusions)
    assert report.issues == [
        "Circular exclusion detected: Alice → Bob → Alice",
        "Alice has no valid gift recipients",
        "Bob has no valid gift recipients",
    ]


def test_analyze_three_cycle_is_reported_but_drawable():
    exclusions = [("a", "b"), ("b", "c"), ("c", "a")]
    report = analyze([ALICE, BOB, CAROL], exclusions)

    assert report.issues == ["Circular exclusion detected: Alice → Bob → Carol → Alice"]
    assert compute_matching(["a", "b", "c"], exclusions).success


def test_analyze_single_participant_has_no_recipient():
    report = analyze([ALICE], [])
    assert report.issues == ["Alice has no valid gift recipients"]


def test_analyze_renders_unknown_ids():
    report = analyze([ALICE], [("a", "zed"), ("zed", "a")])
    assert "Circular exclusion detected: Alice → zed → Alice" in report.issues


def test_build_exclusion_graph_collapses_duplicates():
    graph = build_exclusion_graph([("a", "b"), ("a", "c"), ("a", "b")])
    assert graph == {"a": ["b", "c"]}


def test_find_cycles_visits_each_node_once():
    graph = build_exclusion_graph([("a", "b"), ("b", "a"), ("c", "a")])
    assert find_cycles(graph, ["c", "a", "b"]) == [["a", "b", "a"]]


def test_find_cycles_without_cycles():
    graph = build_exclusion_graph([("a", "b"), ("b", "c"), ("a", "c")])
    assert find_cycles(graph, ["a", "b", "c"]) == []


def test_would_create_cycle_rejects_reverse_pair():
    assert would_create_cycle([("a", "b")], "b", "a")


def test_would_create_cycle_rejects_closing_a_chain():
    existing = [("a", "b"), ("b", "c")]
    assert would_create_cycle(existing, "c", "a")
    assert not would_create_cycle(existing, "a", "c")


def test_would_create_cycle_allows_unrelated_pairs():
    assert not would_create_cycle([], "a", "b")
    assert not would_create_cycle([("a", "b")], "c", "d")
