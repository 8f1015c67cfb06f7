"""Legacy import request models.

Result bodies differ per importer, so routes return them as camelCased
dicts instead of a fixed response model.
"""

from typing import Dict, List, Optional, Union

from pydantic.alias_generators import to_camel

from podcast_club.models.base import ClubModel


class ImportOptions(ClubModel):
    batch_id: Optional[str] = None
    dry_run: bool = False


class ImportRequest(ClubModel):
    csv: Optional[str] = None
    # Keys are column keys such as ``podcastTitle``; values a header name or index
    mapping: Dict[str, Union[int, str, None]] = {}
    options: ImportOptions = ImportOptions()


class RollbackRequest(ClubModel):
    batch_id: Optional[str] = None
    confirm_text: Optional[str] = None


class BatchListResponse(ClubModel):
    batches: List[str]


def camelize(result: dict) -> dict:
    return {to_camel(key): value for key, value in result.items()}
