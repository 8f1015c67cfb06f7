"""Carve outs: recommendations members bring to a meeting"""

import logging
from typing import Optional

from podcast_club.errors import Forbidden, NotFound, ValidationError, require_confirmation
from podcast_club.services.database import Q, db

logger = logging.getLogger(__name__)

CARVE_OUT_TYPES = ("book", "video", "movie", "podcast", "article", "other")
REDACTED_MEMBER = {"id": "", "name": "Club Member"}


def _normalize_type(value) -> str:
    carve_out_type = str(value or "").strip().lower() or "other"
    if carve_out_type not in CARVE_OUT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(CARVE_OUT_TYPES)}.")
    return carve_out_type


class CarveOutService:

    def view(self, carve_out: dict, member: Optional[dict], meeting: Optional[dict]) -> dict:
        return {
            "id": carve_out["id"],
            "title": carve_out.get("title", ""),
            "type": carve_out.get("type") or "other",
            "url": carve_out.get("url") or "",
            "notes": carve_out.get("notes") or "",
            "member": {"id": member["id"], "name": member.get("name", "")} if member else None,
            "meeting": {"id": meeting["id"], "date": meeting.get("date")} if meeting else None,
            "import_batch_id": carve_out.get("import_batch_id"),
            "import_source": carve_out.get("import_source"),
            "created_at": carve_out.get("created_at"),
        }

    def list_carveouts(self, authenticated: bool) -> list:
        """Newest first; entries whose meeting (or owner) is gone are hidden.

        Anonymous callers see every entry attributed to "Club Member".
        """
        members = {member["id"]: member for member in db.members.all()}
        meetings = {meeting["id"]: meeting for meeting in db.meetings.all()}
        carve_outs = sorted(db.carve_outs.all(), key=lambda item: item.get("created_at") or "", reverse=True)

        results = []
        for carve_out in carve_outs:
            meeting = meetings.get(carve_out.get("meeting"))
            if meeting is None:
                continue
            if not authenticated:
                view = self.view(carve_out, None, meeting)
                view["member"] = dict(REDACTED_MEMBER)
                results.append(view)
                continue
            member = members.get(carve_out.get("member"))
            if member is None:
                continue
            results.append(self.view(carve_out, member, meeting))
        return results

    def populated(self, carve_out: dict) -> dict:
        member = db.members.get(Q.id == carve_out.get("member"))
        meeting = db.meetings.get(Q.id == carve_out.get("meeting"))
        return self.view(carve_out, member, meeting)

    def _validated_fields(self, fields: dict) -> dict:
        title = str(fields.get("title") or "").strip()
        meeting_id = str(fields.get("meeting") or "").strip()
        if not title or not meeting_id:
            raise ValidationError("title and meeting are required.")
        if not db.meetings.contains(Q.id == meeting_id):
            raise NotFound("Meeting not found.")
        return {
            "title": title,
            "meeting": meeting_id,
            "url": str(fields.get("url") or "").strip(),
            "notes": str(fields.get("notes") or "").strip(),
        }

    def _owned(self, member: dict, carve_out_id: str, action: str) -> dict:
        carve_out = db.carve_outs.get(Q.id == carve_out_id)
        if carve_out is None:
            raise NotFound("Carve out not found.")
        if not member.get("is_admin") and carve_out.get("member") != member["id"]:
            raise Forbidden(f"Only admins or the member who submitted this carve out can {action} it.")
        return carve_out

    def create_carveout(self, member_id: str, fields: dict) -> dict:
        values = self._validated_fields(fields)
        carve_out = db.new_document(
            **values,
            type=_normalize_type(fields.get("type")),
            member=member_id,
            import_batch_id=None,
            import_source=None,
        )
        db.carve_outs.insert(carve_out)
        logger.info(f"Carve out {carve_out['id']} added by member {member_id}")
        return carve_out

    def update_carveout(self, member: dict, carve_out_id: str, fields: dict) -> dict:
        self._owned(member, carve_out_id, "edit")
        updates = self._validated_fields(fields)
        if fields.get("type"):
            updates["type"] = _normalize_type(fields["type"])
        updated = db.update_by_id(db.carve_outs, carve_out_id, updates)
        if updated is None:
            raise NotFound("Carve out not found.")
        return updated

    def delete_carveout(self, member: dict, carve_out_id: str, confirm_text: Optional[str]) -> dict:
        require_confirmation(confirm_text, "Type DELETE to confirm carve out deletion.")
        carve_out = self._owned(member, carve_out_id, "delete")
        db.carve_outs.remove(Q.id == carve_out_id)
        logger.info(f"Carve out {carve_out_id} deleted by member {member['id']}")
        return {"id": carve_out["id"], "title": carve_out.get("title", "")}


carveout_service = CarveOutService()
