"""Tests for candidate retrieval: scopes and structured filters."""

from datetime import timedelta

import pytest

from recall.core.candidates import Scope, SearchFilters, get_candidates, get_recent_entries
from recall.core.db import utcnow
from recall.core.retrieval import vector_search
from recall.core.store import create_person, tag_person


def _ids(entries):
    return {e["id"] for e in entries}


@pytest.fixture
def journal(make_entry):
    """alice and bob with entries at every privacy level."""
    return {
        "alice_private": make_entry("alice", "Quiet evening at home", title="Evening"),
        "alice_public": make_entry("alice", "Farmers market haul", title="Market", privacy="public"),
        "bob_private": make_entry("bob", "Bob's secret plans", title="Plans"),
        "bob_public": make_entry("bob", "Climbed the north ridge", title="Ridge", privacy="public"),
        "bob_shared": make_entry(
            "bob", "Photos from the wedding", title="Wedding",
            privacy="shared", shared_with=["alice"],
        ),
        "carol_shared_other": make_entry(
            "carol", "Only for dave", title="Dave note",
            privacy="shared", shared_with=["dave"],
        ),
    }


class TestScopes:
    def test_own(self, journal):
        assert _ids(get_candidates("alice", Scope.OWN)) == {
            journal["alice_private"], journal["alice_public"],
        }

    def test_feed_excludes_private_and_own(self, journal):
        assert _ids(get_candidates("alice", Scope.FEED)) == {
            journal["bob_public"], journal["bob_shared"],
        }

    def test_feed_include_own(self, journal):
        ids = _ids(get_candidates("alice", "feed", include_own=True))
        assert journal["alice_private"] in ids
        assert journal["bob_public"] in ids
        assert journal["bob_private"] not in ids
        assert journal["carol_shared_other"] not in ids

    def test_shared(self, journal):
        assert _ids(get_candidates("alice", Scope.SHARED)) == {journal["bob_shared"]}


class TestFilters:
    def test_tag_filter(self, make_entry):
        run = make_entry("alice", "Went for a 5k run in the park", title="Morning Run", tags=["fitness"])
        make_entry("alice", "Pasta night", title="Dinner", tags=["food"])

        found = get_candidates("alice", filters=SearchFilters(tags=["fitness"]))
        assert _ids(found) == {run}

    def test_tags_are_conjunctive(self, make_entry):
        both = make_entry("alice", "Trail run with Sam", tags=["fitness", "outdoors"])
        make_entry("alice", "Gym session", tags=["fitness"])

        found = get_candidates("alice", filters=SearchFilters(tags=["fitness", "outdoors"]))
        assert _ids(found) == {both}

    def test_unknown_tag_matches_nothing(self, make_entry):
        make_entry("alice", "Pasta night", tags=["food"])
        assert get_candidates("alice", filters=SearchFilters(tags=["fitness"])) == []

    def test_person_filter_by_first_or_full_name(self, make_entry):
        tagged = make_entry("alice", "Coffee and a long walk")
        make_entry("alice", "Alone at the library")
        sam = create_person("alice", "Sam", "Lee")
        tag_person(tagged, sam)

        for name in ("sam", "Sam Lee", "  SAM   lee "):
            assert _ids(get_candidates("alice", filters=SearchFilters(people=[name]))) == {tagged}

    def test_person_must_belong_to_querying_user(self, make_entry):
        entry = make_entry("bob", "Dinner with Sam", privacy="public")
        tag_person(entry, create_person("bob", "Sam"))

        found = get_candidates("alice", Scope.FEED, SearchFilters(people=["Sam"]))
        assert found == []

    def test_date_range_is_inclusive_of_end_day(self, make_entry):
        today = utcnow().date()
        recent = make_entry("alice", "Yesterday's notes", days_ago=1)
        make_entry("alice", "Old notes", days_ago=40)

        filters = SearchFilters(date_from=today - timedelta(days=2), date_to=today - timedelta(days=1))
        assert _ids(get_candidates("alice", filters=filters)) == {recent}

    def test_privacy_filter(self, journal):
        found = get_candidates("alice", filters=SearchFilters(privacy="public"))
        assert _ids(found) == {journal["alice_public"]}

    def test_invalid_privacy_rejected(self):
        with pytest.raises(ValueError):
            SearchFilters(privacy="friends-only")

    def test_has_structural(self):
        assert not SearchFilters().has_structural()
        assert not SearchFilters(privacy="public").has_structural()
        assert SearchFilters(tags=["x"]).has_structural()
        assert SearchFilters(date_to=utcnow().date()).has_structural()


class TestRecentEntries:
    def test_newest_first_within_window(self, make_entry):
        old = make_entry("alice", "Old", days_ago=45)
        older = make_entry("alice", "Older", days_ago=10)
        newest = make_entry("alice", "Newest", days_ago=1)

        recent = get_recent_entries("alice", Scope.OWN, days=30, limit=5)
        ids = [e["id"] for e in recent]
        assert ids == [newest, older]
        assert old not in ids

    def test_limit(self, make_entry):
        for i in range(4):
            make_entry("alice", f"Entry {i}", days_ago=i)
        assert len(get_recent_entries("alice", Scope.OWN, days=30, limit=2)) == 2


def test_wildcard_with_unmatched_tag_is_empty_not_error(make_entry, embed):
    make_entry("alice", "Pasta night", tags=["food"])
    calls_before = embed.calls

    results = vector_search("*", "alice", filters=SearchFilters(tags=["fitness"]))

    assert results == []
    assert embed.calls == calls_before  # no query embedding without candidates
