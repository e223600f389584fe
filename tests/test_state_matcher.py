"""Tests for state fingerprinting and deduplication."""

from waggen.knowledge import Action, ActionType, AppState, PageSnapshot
from waggen.state_matcher import StateMatcher, describe, fingerprint, url_path


def snap(url="http://localhost:3000/", signatures=("BUTTON||add||Add||",), **kw):
    return PageSnapshot(url=url, title=kw.pop("title", "Todo"), signatures=list(signatures), **kw)


class TestFingerprint:
    def test_stable(self):
        assert fingerprint(snap()) == fingerprint(snap())
        assert len(fingerprint(snap())) == 12

    def test_order_insensitive(self):
        a = snap(signatures=["x", "y", "z"])
        b = snap(signatures=["z", "x", "y"])
        assert fingerprint(a) == fingerprint(b)

    def test_list_count_and_filter_matter(self):
        base = fingerprint(snap())
        assert fingerprint(snap(list_item_count=1)) != base
        assert fingerprint(snap(active_filter="active")) != base

    def test_url_path(self):
        assert url_path("http://localhost:3000") == "/"
        assert url_path("http://localhost:3000/a?b=1#c") == "/a"


class TestDescribe:
    def test_parts(self):
        s = snap(list_item_count=3, active_filter="active", completed_count=1)
        assert describe(s) == "Todo - 3 items - filter: active - 1 completed"

    def test_empty_list_and_all_filter(self):
        assert describe(snap(active_filter="all")) == "Todo - empty list"


class TestStateMatcher:
    """Captures of the same page resolve to the same state."""

    def test_identify_is_idempotent(self):
        matcher = StateMatcher()
        first, created = matcher.observe(snap(), [])
        again, created_again = matcher.observe(snap(), [])
        assert created and not created_again
        assert first is again
        assert first.id == "state_001"
        assert matcher.state_count == 1

    def test_query_string_is_ignored(self):
        matcher = StateMatcher()
        a = matcher.identify(snap(url="http://localhost:3000/list?x=1"), [])
        b = matcher.identify(snap(url="http://localhost:3000/list?x=2"), [])
        assert a.id == b.id

    def test_distinct_pages(self):
        matcher = StateMatcher()
        a = matcher.identify(snap(), [])
        b = matcher.identify(snap(url="http://localhost:3000/other"), [])
        assert (a.id, b.id) == ("state_001", "state_002")
        assert matcher.find(snap(url="http://localhost:3000/other")) is b
        assert matcher.find(snap(signatures=["nope"])) is None

    def test_restore_keeps_counter_ahead(self):
        matcher = StateMatcher()
        matcher.restore(AppState("state_007", "http://localhost:3000/", "abc", "old"))
        fresh = matcher.identify(snap(), [])
        assert fresh.id == "state_008"
        assert matcher.get_state("state_007").description == "old"

    def test_explored_bookkeeping(self):
        matcher = StateMatcher()
        state = matcher.identify(snap(), [])
        click = Action(ActionType.CLICK, "#a", "A")
        other = Action(ActionType.CLICK, "#b", "B")
        matcher.mark_explored(state.id, click)
        matcher.mark_explored(state.id, click)
        assert matcher.is_explored(state.id, click)
        assert matcher.unexplored(state.id, [click, other]) == [other]
        assert matcher.explored_count() == 1
