"""Shared shape of the legacy spreadsheet importers.

Each importer parses CSV text, maps columns, turns rows into club records
tagged with ``import_source`` / ``import_batch_id`` and reports non-fatal
problems as warnings. A whole batch can be rolled back by id.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from podcast_club.errors import NotFound, ValidationError, require_confirmation
from podcast_club.services.database import Q, db
from podcast_club.services.imports.csv_tools import FieldMapping, parse_csv, sanitize_batch_id

logger = logging.getLogger(__name__)


@dataclass
class ImportContext:
    """Per-run state handed to ``LegacyImporter.import_rows``"""
    admin: dict
    rows: List[List[str]]
    mapping: FieldMapping
    batch_id: str
    dry_run: bool
    source: str
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def tag(self) -> dict:
        return {"import_batch_id": self.batch_id, "import_source": self.source}


class LegacyImporter:
    """Base class; subclasses set the class attributes and ``import_rows``"""

    source: str = ""
    batch_prefix: str = "legacy"
    min_rows: int = 2
    too_short_message: str = "CSV must include a header row and at least one data row."

    def run(self, admin_id: str, csv_text: Optional[str], mapping: Optional[FieldMapping] = None,
            batch_id: Optional[str] = None, dry_run: bool = False) -> dict:
        text = str(csv_text or "")
        if not text.strip():
            raise ValidationError("csv is required.")

        rows = parse_csv(text)
        if len(rows) < self.min_rows:
            raise ValidationError(self.too_short_message)

        admin = db.members.get(Q.id == admin_id)
        if admin is None:
            raise NotFound("Admin member not found.")

        context = ImportContext(
            admin=admin,
            rows=rows,
            mapping=mapping or {},
            batch_id=sanitize_batch_id(batch_id, self.batch_prefix),
            dry_run=bool(dry_run),
            source=self.source,
        )
        result = self.import_rows(context)
        logger.info(
            f"Import {self.source} batch {context.batch_id} finished "
            f"(dry_run={context.dry_run}, warnings={len(context.warnings)})"
        )
        return {"batch_id": context.batch_id, "dry_run": context.dry_run, **result, "warnings": context.warnings}

    def import_rows(self, context: ImportContext) -> dict:
        raise NotImplementedError

    # =========================================================================
    # Batches
    # =========================================================================

    def batch_tables(self) -> list:
        """Tables this importer writes batch-tagged documents into"""
        raise NotImplementedError

    def list_batches(self) -> List[str]:
        batches = set()
        for table in self.batch_tables():
            for doc in table.search(Q.import_source == self.source):
                if doc.get("import_batch_id"):
                    batches.add(doc["import_batch_id"])
        return sorted(batches, reverse=True)

    def rollback(self, batch_id: Optional[str], confirm_text: Optional[str]) -> dict:
        batch_id = str(batch_id or "").strip()
        if not batch_id:
            raise ValidationError("batchId is required.")
        require_confirmation(confirm_text, "Type DELETE to confirm import rollback.")

        result = self.delete_batch(batch_id)
        logger.info(f"Import {self.source} batch {batch_id} rolled back: {result}")
        return {"batch_id": batch_id, **result}

    def delete_batch(self, batch_id: str) -> dict:
        raise NotImplementedError

    def batch_query(self, batch_id: str):
        return (Q.import_source == self.source) & (Q.import_batch_id == batch_id)
