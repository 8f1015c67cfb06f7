"""Podcast submission and rating models"""

from typing import List, Optional, Union

from podcast_club.models.base import ClubModel, MemberRef

# Numbers may arrive as JSON numbers or numeric strings from form inputs
NumberInput = Optional[Union[int, float, str]]


class PodcastCreateRequest(ClubModel):
    title: Optional[str] = None
    host: Optional[str] = None
    episode_count: NumberInput = None
    episode_names: Optional[str] = None
    total_time_minutes: NumberInput = None
    link: Optional[str] = None
    notes: Optional[str] = None


class VoteRequest(ClubModel):
    rating: Optional[str] = None


class RatingResponse(ClubModel):
    member: MemberRef
    value: str
    points: int


class PodcastResponse(ClubModel):
    id: str
    title: str
    host: str = ""
    episode_count: Union[int, float] = 0
    episode_names: str = ""
    total_time_minutes: Union[int, float] = 0
    link: str = ""
    notes: str = ""
    status: str
    submitted_by: MemberRef
    ratings: List[RatingResponse] = []
    ranking_score: int = 0
    missing_voters: List[str] = []
    discussed_meeting: Optional[str] = None
    discussed_meeting_date: Optional[str] = None
    created_at: Optional[str] = None


class PodcastRef(ClubModel):
    id: str
    title: str


class DeletedPodcastResponse(ClubModel):
    message: str
    podcast: PodcastRef
