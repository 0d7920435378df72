import pytest

from quire.errors import ParseError, UnresolvedReferenceError
from quire.report import InvalidTransition, ItemState, RunReport


def test_happy_path_transitions():
    report = RunReport()
    report.record_loaded("a.md")
    report.record_resolved("a.md")
    report.record_composed("a.md")
    assert report.state_of("a.md") is ItemState.COMPOSED
    assert report.succeeded == ["a.md"]
    assert report.failures == []
    assert report.summary() == "1 succeeded, 0 skipped"


def test_failures_are_grouped_by_kind():
    report = RunReport()
    report.record_failure("bad.md", ParseError("bad.md", "missing opening front-matter delimiter '---'"))
    report.record_loaded("orphan.md")
    report.record_failure("orphan.md", UnresolvedReferenceError("orphan.md", "layout 'ghost' not found"))
    report.record_loaded("other.md")
    report.record_resolved("other.md")
    report.record_failure("other.md", UnresolvedReferenceError("other.md", "layout 'x' not found"))

    assert report.state_of("bad.md") is ItemState.FAILED
    assert report.skipped_by_kind() == {"ParseError": 1, "UnresolvedReferenceError": 2}
    assert report.summary() == "0 succeeded, 3 skipped (ParseError: 1, UnresolvedReferenceError: 2)"
    lines = report.lines()
    assert lines[1] == "  bad.md: [ParseError] missing opening front-matter delimiter '---'"
    assert len(report.errors) == 3


@pytest.mark.parametrize(
    "steps",
    [
        ["resolved"],
        ["composed"],
        ["loaded", "composed"],
        ["loaded", "loaded"],
        ["loaded", "resolved", "composed", "failed"],
        ["failed", "loaded"],
    ],
)
def test_invalid_transitions_are_rejected(steps):
    report = RunReport()
    actions = {
        "loaded": lambda: report.record_loaded("a.md"),
        "resolved": lambda: report.record_resolved("a.md"),
        "composed": lambda: report.record_composed("a.md"),
        "failed": lambda: report.record_failure("a.md", ParseError("a.md", "x")),
    }
    for step in steps[:-1]:
        actions[step]()
    with pytest.raises(InvalidTransition):
        actions[steps[-1]]()


def test_unknown_item_has_no_state():
    assert RunReport().state_of("missing.md") is None


def test_run_errors_are_listed_but_not_counted():
    report = RunReport()
    report.record_loaded("a.md")
    report.record_resolved("a.md")
    report.record_composed("a.md")
    report.record_run_error(UnresolvedReferenceError("<pagination>", "layout 'home' not found"))

    assert report.summary() == "1 succeeded, 0 skipped"
    assert report.failures == []
    assert report.state_of("<pagination>") is None
    assert report.lines() == [
        "1 succeeded, 0 skipped",
        "  <pagination>: [UnresolvedReferenceError] layout 'home' not found",
    ]
