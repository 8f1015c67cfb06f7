"""Meeting models"""

from typing import Optional, Union

from podcast_club.models.base import ClubModel


class MeetingCreateRequest(ClubModel):
    date: Optional[str] = None
    host: Optional[str] = None
    podcast: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class MeetingUpdateRequest(ClubModel):
    """Only fields present in the body are applied; ``podcast: null`` detaches"""
    date: Optional[str] = None
    host: Optional[str] = None
    podcast: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


class MeetingCompleteRequest(ClubModel):
    notes: Optional[str] = None


class MeetingHost(ClubModel):
    id: str
    name: str
    address: str = ""


class MeetingPodcast(ClubModel):
    id: str
    title: str
    host: str = ""
    episode_count: Union[int, float] = 0
    episode_names: str = ""
    total_time_minutes: Union[int, float] = 0
    link: str = ""
    notes: str = ""


class MeetingResponse(ClubModel):
    id: str
    date: Optional[str] = None
    host: Optional[MeetingHost] = None
    podcast: Optional[MeetingPodcast] = None
    location: str = ""
    notes: str = ""
    status: str
    completed_at: Optional[str] = None
    import_batch_id: Optional[str] = None
    import_source: Optional[str] = None
    created_at: Optional[str] = None
