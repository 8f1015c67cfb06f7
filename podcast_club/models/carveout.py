"""Carve out models"""

from typing import Optional

from podcast_club.models.base import ClubModel, MemberRef


class CarveOutRequest(ClubModel):
    title: Optional[str] = None
    type: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    meeting: Optional[str] = None


class CarveOutMeeting(ClubModel):
    id: str
    date: Optional[str] = None


class CarveOutResponse(ClubModel):
    id: str
    title: str
    type: str = "other"
    url: str = ""
    notes: str = ""
    member: Optional[MemberRef] = None
    meeting: Optional[CarveOutMeeting] = None
    import_batch_id: Optional[str] = None
    import_source: Optional[str] = None
    created_at: Optional[str] = None


class DeletedCarveOutResponse(ClubModel):
    message: str
    id: str
    title: str
