"""Carve out routes"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from podcast_club.auth.session import SessionContext, get_optional_session, require_session
from podcast_club.models.base import ConfirmRequest
from podcast_club.models.carveout import CarveOutRequest, CarveOutResponse, DeletedCarveOutResponse
from podcast_club.services.carveouts import carveout_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=list[CarveOutResponse])
async def list_carveouts(session: Optional[SessionContext] = Depends(get_optional_session)):
    return carveout_service.list_carveouts(authenticated=session is not None)


@router.post("", response_model=CarveOutResponse, status_code=201)
async def create_carveout(body: CarveOutRequest, session: SessionContext = Depends(require_session)):
    carve_out = carveout_service.create_carveout(session.member_id, body.model_dump())
    return carveout_service.populated(carve_out)


@router.patch("/{carve_out_id}", response_model=CarveOutResponse)
async def update_carveout(
    carve_out_id: str,
    body: CarveOutRequest,
    session: SessionContext = Depends(require_session),
):
    updated = carveout_service.update_carveout(session.member, carve_out_id, body.model_dump())
    return carveout_service.populated(updated)


@router.delete("/{carve_out_id}", response_model=DeletedCarveOutResponse)
async def delete_carveout(
    carve_out_id: str,
    body: ConfirmRequest,
    session: SessionContext = Depends(require_session),
):
    deleted = carveout_service.delete_carveout(session.member, carve_out_id, body.confirm_text)
    return {"message": "Carve out deleted.", **deleted}
