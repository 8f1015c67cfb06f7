"""Admin-only legacy spreadsheet imports.

Each importer is exposed at ``/imports/{slug}``: POST runs an import (or a
dry run), GET lists batches and DELETE rolls a batch back.
"""

import logging

from fastapi import APIRouter, Depends

from podcast_club.auth.session import SessionContext, require_admin
from podcast_club.errors import NotFound
from podcast_club.models.imports import BatchListResponse, ImportRequest, RollbackRequest, camelize
from podcast_club.services.imports import IMPORTERS
from podcast_club.services.imports.base import LegacyImporter

logger = logging.getLogger(__name__)
router = APIRouter()


def get_importer(slug: str) -> LegacyImporter:
    importer = IMPORTERS.get(slug)
    if importer is None:
        raise NotFound("Unknown importer.")
    return importer


@router.get("/{slug}", response_model=BatchListResponse)
async def list_batches(
    admin: SessionContext = Depends(require_admin),
    importer: LegacyImporter = Depends(get_importer),
):
    return {"batches": importer.list_batches()}


@router.post("/{slug}")
async def run_import(
    body: ImportRequest,
    admin: SessionContext = Depends(require_admin),
    importer: LegacyImporter = Depends(get_importer),
):
    result = importer.run(
        admin.member_id,
        body.csv,
        mapping=body.mapping,
        batch_id=body.options.batch_id,
        dry_run=body.options.dry_run,
    )
    return camelize(result)


@router.delete("/{slug}")
async def rollback_import(
    body: RollbackRequest,
    admin: SessionContext = Depends(require_admin),
    importer: LegacyImporter = Depends(get_importer),
):
    return camelize(importer.rollback(body.batch_id, body.confirm_text))
