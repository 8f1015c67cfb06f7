"""Ranking Engine Tests

Score, missing voters, duplicate detection and list ordering.
"""

from podcast_club.services.ranking import (
    content_key,
    dedupe_by_content,
    missing_voters,
    rating_points,
    ranking_score,
    sort_for_discussion,
    sort_like_sheet,
)

MEMBERS = [
    {"id": "a", "name": "alice"},
    {"id": "b", "name": "Bob"},
    {"id": "c", "name": "carl"},
]


class TestScoring:
    """Points per rating and their sum"""

    def test_rating_points(self):
        assert rating_points("I like it a lot.") == 2
        assert rating_points("I like it.") == 1
        assert rating_points("Meh") == 0
        assert rating_points("My podcast") == 0
        assert rating_points("No selection") == 0
        assert rating_points("something else") == 0

    def test_ranking_score_sums_points(self):
        podcast = {"ratings": [
            {"member": "a", "value": "My podcast", "points": 0},
            {"member": "b", "value": "I like it a lot.", "points": 2},
            {"member": "c", "value": "I like it.", "points": 1},
        ]}
        assert ranking_score(podcast) == 3

    def test_ranking_score_without_ratings(self):
        assert ranking_score({}) == 0


class TestMissingVoters:
    """Members who still owe a rating"""

    def test_no_selection_counts_as_missing(self):
        podcast = {"ratings": [
            {"member": "a", "value": "My podcast", "points": 0},
            {"member": "b", "value": "No selection", "points": 0},
        ]}
        assert missing_voters(podcast, MEMBERS) == ["Bob", "carl"]

    def test_sorted_case_insensitively(self):
        assert missing_voters({"ratings": []}, MEMBERS) == ["alice", "Bob", "carl"]

    def test_everyone_voted(self):
        podcast = {"ratings": [{"member": m["id"], "value": "Meh", "points": 0} for m in MEMBERS]}
        assert missing_voters(podcast, MEMBERS) == []


class TestDuplicates:
    """Re-submissions of the same episodes collapse in the discuss queue"""

    def test_content_key_ignores_case_whitespace_and_url_noise(self):
        first = {"title": "Serial ", "host": "Sarah  Koenig", "episode_names": "Ep 1",
                 "link": "https://serialpodcast.org/season-one?utm_source=x"}
        second = {"title": "serial", "host": "sarah koenig", "episode_names": "ep 1",
                  "link": "http://SerialPodcast.org/season-one"}
        assert content_key(first) == content_key(second)

    def test_different_episodes_are_distinct(self):
        first = {"title": "Serial", "host": "Koenig", "episode_names": "Ep 1", "link": "x"}
        second = {"title": "Serial", "host": "Koenig", "episode_names": "Ep 2", "link": "x"}
        assert content_key(first) != content_key(second)

    def test_dedupe_keeps_first_occurrence(self):
        podcasts = [
            {"id": "old", "title": "Serial", "host": "K", "episode_names": "1", "link": "x"},
            {"id": "new", "title": "SERIAL", "host": "k", "episode_names": "1", "link": "X"},
        ]
        assert [podcast["id"] for podcast in dedupe_by_content(podcasts)] == ["old"]


class TestOrdering:
    """Discussion order and sheet order"""

    def test_discussion_order_by_score_then_title(self):
        podcasts = [
            {"title": "beta", "ranking_score": 1},
            {"title": "Alpha", "ranking_score": 1},
            {"title": "gamma", "ranking_score": 4},
        ]
        assert [p["title"] for p in sort_for_discussion(podcasts)] == ["gamma", "Alpha", "beta"]

    def test_sheet_order_puts_missing_votes_first(self):
        podcasts = [
            {"title": "Done", "ranking_score": 5, "missing_voters": []},
            {"title": "Waiting", "ranking_score": 0, "missing_voters": ["Bob", "carl"]},
            {"title": "Almost", "ranking_score": 2, "missing_voters": ["Bob"]},
        ]
        assert [p["title"] for p in sort_like_sheet(podcasts)] == ["Waiting", "Almost", "Done"]
