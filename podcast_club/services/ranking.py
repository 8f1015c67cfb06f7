"""Rating scale and podcast ordering rules"""

import re
from typing import Iterable, List
from urllib.parse import urlparse

MY_PODCAST = "My podcast"
NO_SELECTION = "No selection"

RATING_POINTS = {
    "I like it a lot.": 2,
    "I like it.": 1,
    "Meh": 0,
    MY_PODCAST: 0,
    NO_SELECTION: 0,
    "No Selection": 0,
}

# Values a member may pick when voting
RATING_OPTIONS = ("I like it a lot.", "I like it.", "Meh", MY_PODCAST, NO_SELECTION)

NO_SELECTION_VALUES = {NO_SELECTION, "No Selection"}

_WHITESPACE = re.compile(r"\s+")


def rating_points(value: str) -> int:
    return RATING_POINTS.get(value, 0)


def ranking_score(podcast: dict) -> int:
    return sum(int(rating.get("points") or 0) for rating in podcast.get("ratings") or [])


def missing_voters(podcast: dict, members: Iterable[dict]) -> List[str]:
    """Names of members who have not picked a real rating yet"""
    voted = {
        rating.get("member")
        for rating in podcast.get("ratings") or []
        if rating.get("value") not in NO_SELECTION_VALUES
    }
    names = [member.get("name", "") for member in members if member["id"] not in voted]
    return sorted(names, key=str.casefold)


def _normalize_text(value) -> str:
    return _WHITESPACE.sub(" ", str(value or "").strip().lower())


def _normalize_link(value) -> str:
    raw = str(value or "").strip()
    if not raw:
        return ""
    parsed = urlparse(raw)
    if parsed.scheme and parsed.hostname:
        return f"{parsed.hostname}{parsed.path or '/'}".lower()
    return raw.lower()


def content_key(podcast: dict) -> str:
    """Key that treats re-submissions of the same episode(s) as duplicates"""
    return "||".join([
        _normalize_text(podcast.get("title")),
        _normalize_text(podcast.get("host")),
        _normalize_text(podcast.get("episode_names")),
        _normalize_link(podcast.get("link")),
    ])


def dedupe_by_content(podcasts: Iterable[dict]) -> List[dict]:
    seen = set()
    unique = []
    for podcast in podcasts:
        key = content_key(podcast)
        if key in seen:
            continue
        seen.add(key)
        unique.append(podcast)
    return unique


def sort_for_discussion(podcasts: Iterable[dict]) -> List[dict]:
    """Highest score first, then title"""
    return sorted(
        podcasts,
        key=lambda podcast: (-podcast["ranking_score"], podcast.get("title", "").casefold()),
    )


def sort_like_sheet(podcasts: Iterable[dict]) -> List[dict]:
    """Podcasts still missing votes first, then score, then title"""
    return sorted(
        podcasts,
        key=lambda podcast: (
            -len(podcast["missing_voters"]),
            -podcast["ranking_score"],
            podcast.get("title", "").casefold(),
        ),
    )
