"""Podcast routes: listings, submissions and votes"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from podcast_club.auth.session import SessionContext, get_optional_session, require_session
from podcast_club.models.base import ConfirmRequest
from podcast_club.models.podcast import DeletedPodcastResponse, PodcastCreateRequest, PodcastResponse, VoteRequest
from podcast_club.services.database import db
from podcast_club.services.podcasts import podcast_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[PodcastResponse])
async def list_podcasts(session: Optional[SessionContext] = Depends(get_optional_session)):
    """Members get the full ranked sheet; visitors only see discussed podcasts"""
    return podcast_service.list_podcasts(authenticated=session is not None)


@router.get("/discuss-queue", response_model=list[PodcastResponse])
async def discuss_queue(session: SessionContext = Depends(require_session)):
    return podcast_service.discuss_queue()


@router.post("", response_model=PodcastResponse, status_code=201)
async def submit_podcast(body: PodcastCreateRequest, session: SessionContext = Depends(require_session)):
    podcast = podcast_service.submit_podcast(session.member_id, body.model_dump())
    return podcast_service.format_podcast(podcast, db.members.all())


@router.post("/{podcast_id}/vote", response_model=PodcastResponse)
async def vote(podcast_id: str, body: VoteRequest, session: SessionContext = Depends(require_session)):
    return podcast_service.cast_vote(session.member_id, podcast_id, body.rating)


@router.delete("/{podcast_id}", response_model=DeletedPodcastResponse)
async def delete_podcast(
    podcast_id: str,
    body: ConfirmRequest,
    session: SessionContext = Depends(require_session),
):
    deleted = podcast_service.delete_podcast(session.member, podcast_id, body.confirm_text)
    return {"message": "Podcast deleted.", "podcast": deleted}
