"""Meeting lifecycle: scheduled -> completed.

At most one meeting is upcoming at a time. Older records may lack an
explicit ``status``; for those the state is derived from ``completed_at``
and the meeting date.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from podcast_club.errors import Forbidden, InvalidState, NotFound, ValidationError
from podcast_club.services.database import Q, db, parse_datetime, utcnow

logger = logging.getLogger(__name__)

SCHEDULED = "scheduled"
COMPLETED = "completed"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_completed(meeting: dict, now: Optional[datetime] = None) -> bool:
    """Completed by explicit status, a completion stamp, or a past date"""
    now = now or utcnow()
    if meeting.get("status") == COMPLETED or meeting.get("completed_at"):
        return True
    meeting_date = parse_datetime(meeting.get("date"))
    return meeting_date is not None and meeting_date < now


def effective_status(meeting: dict, now: Optional[datetime] = None) -> str:
    if meeting.get("status"):
        return meeting["status"]
    return COMPLETED if is_completed(meeting, now) else SCHEDULED


def _is_upcoming_legacy(meeting: dict, now: datetime) -> bool:
    if meeting.get("status") or meeting.get("completed_at"):
        return False
    meeting_date = parse_datetime(meeting.get("date"))
    return meeting_date is not None and meeting_date >= now


def parse_meeting_date(value) -> str:
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError("date must be a valid date.")
    return parsed.isoformat()


class MeetingService:
    """Meeting scheduling, completion and deletion"""

    def get_meeting(self, meeting_id: str) -> Optional[dict]:
        return db.meetings.get(Q.id == meeting_id)

    def find_scheduled_meeting(self, exclude_id: Optional[str] = None) -> Optional[dict]:
        """The meeting currently holding the single upcoming slot, if any.

        Check-then-insert is not transactional: two concurrent creations can
        both see an empty slot.
        """
        now = utcnow()
        for meeting in db.meetings.all():
            if meeting["id"] == exclude_id:
                continue
            if meeting.get("status") == SCHEDULED or _is_upcoming_legacy(meeting, now):
                return meeting
        return None

    # =========================================================================
    # Views
    # =========================================================================

    def view(self, meeting: dict, now: Optional[datetime] = None) -> dict:
        host = db.members.get(Q.id == meeting.get("host")) if meeting.get("host") else None
        podcast = db.podcasts.get(Q.id == meeting.get("podcast")) if meeting.get("podcast") else None
        return {
            "id": meeting["id"],
            "date": meeting.get("date"),
            "host": {"id": host["id"], "name": host.get("name", ""), "address": host.get("address") or ""} if host else None,
            "podcast": _podcast_summary(podcast) if podcast else None,
            "location": meeting.get("location") or "",
            "notes": meeting.get("notes") or "",
            "status": effective_status(meeting, now),
            "completed_at": meeting.get("completed_at"),
            "import_batch_id": meeting.get("import_batch_id"),
            "import_source": meeting.get("import_source"),
            "created_at": meeting.get("created_at"),
        }

    def list_meetings(self) -> list:
        now = utcnow()
        meetings = sorted(db.meetings.all(), key=_newest_first_key, reverse=True)
        return [self.view(meeting, now) for meeting in meetings]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_location(self, host_id: str, location: Optional[str]) -> str:
        host = db.members.get(Q.id == host_id)
        if host is None:
            raise NotFound("Host not found.")
        final_location = str(location or "").strip() or host.get("address") or ""
        if not final_location:
            raise ValidationError("location is required.")
        return final_location

    def _require_pending_podcast(self, podcast_id: str) -> dict:
        podcast = db.podcasts.get(Q.id == podcast_id)
        if podcast is None:
            raise NotFound("Podcast not found.")
        if podcast.get("status") != "pending":
            raise InvalidState("Only Podcasts To Discuss can be selected for meetings.")
        return podcast

    def _mark_discussed(self, podcast_id: str, meeting_id: str) -> None:
        db.update_by_id(db.podcasts, podcast_id, {"status": "discussed", "discussed_meeting": meeting_id})

    def _revert_podcast(self, podcast_id: str, meeting_id: str) -> None:
        """Return a podcast to the queue unless it has moved to another meeting"""
        db.find_one_and_update(
            db.podcasts,
            (Q.id == podcast_id) & (Q.discussed_meeting == meeting_id),
            {"status": "pending", "discussed_meeting": None},
        )

    # =========================================================================
    # Operations
    # =========================================================================

    def create_meeting(
        self,
        date,
        host: Optional[str],
        podcast: Optional[str] = None,
        location: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Create a meeting.

        While another meeting holds the upcoming slot the new one is recorded
        as already completed, which is how past meetings get logged.
        """
        host = str(host or "").strip()
        if not date or not host:
            raise ValidationError("date and host are required.")
        meeting_date = parse_meeting_date(date)
        final_location = self._resolve_location(host, location)

        podcast_id = str(podcast or "").strip() or None
        if podcast_id:
            self._require_pending_podcast(podcast_id)

        as_completed = self.find_scheduled_meeting() is not None
        meeting = db.new_document(
            date=meeting_date,
            host=host,
            podcast=podcast_id,
            location=final_location,
            notes=str(notes or ""),
            status=COMPLETED if as_completed else SCHEDULED,
            completed_at=db.timestamp() if as_completed else None,
            import_batch_id=None,
            import_source=None,
        )
        db.meetings.insert(meeting)

        if as_completed and podcast_id:
            self._mark_discussed(podcast_id, meeting["id"])

        logger.info(f"Meeting created: {meeting['id']} ({meeting['status']})")
        return meeting

    def edit_meeting(self, member: dict, meeting_id: str, fields: dict) -> dict:
        """Edit a meeting as an admin or its host; ``fields`` holds only sent keys"""
        existing = self.get_meeting(meeting_id)
        if existing is None:
            raise NotFound("Meeting not found.")

        is_admin = bool(member.get("is_admin"))
        if not is_admin and existing.get("host") != member["id"]:
            raise Forbidden("Only admins or the meeting host can edit this meeting.")

        requested_host = str(fields.get("host") or "").strip()
        next_host = requested_host if is_admin and requested_host else existing["host"]
        requested_location = str(fields.get("location") or "").strip()
        if requested_location or next_host != existing["host"]:
            final_location = self._resolve_location(next_host, requested_location)
        else:
            # Same host and no new location: keep what is stored
            final_location = existing.get("location") or self._resolve_location(next_host, None)

        old_podcast = existing.get("podcast")
        has_podcast = "podcast" in fields
        next_podcast = (str(fields.get("podcast") or "").strip() or None) if has_podcast else old_podcast
        if next_podcast and next_podcast != old_podcast:
            self._require_pending_podcast(next_podcast)

        updates = {"location": final_location, "host": next_host}
        if fields.get("date"):
            updates["date"] = parse_meeting_date(fields["date"])
        if has_podcast:
            updates["podcast"] = next_podcast
        if isinstance(fields.get("notes"), str):
            updates["notes"] = fields["notes"]

        updated = db.update_by_id(db.meetings, meeting_id, updates)
        if updated is None:
            raise NotFound("Meeting not found.")

        if is_completed(existing) and next_podcast != old_podcast:
            if old_podcast:
                self._revert_podcast(old_podcast, meeting_id)
            if next_podcast:
                self._mark_discussed(next_podcast, meeting_id)

        return updated

    def complete_meeting(self, meeting_id: str, notes: Optional[str]) -> dict:
        completion_notes = str(notes or "").strip()
        if not completion_notes:
            raise ValidationError("Completion notes are required.")

        meeting = self.get_meeting(meeting_id)
        if meeting is None:
            raise NotFound("Meeting not found.")
        if is_completed(meeting):
            raise InvalidState("Meeting is already completed.")
        if not meeting.get("podcast"):
            raise InvalidState("Select a podcast before completing this meeting.")

        completed = db.find_one_and_update(
            db.meetings,
            (Q.id == meeting_id) & ~(Q.status == COMPLETED) & ~(Q.completed_at.test(bool)),
            {"status": COMPLETED, "completed_at": db.timestamp(), "notes": completion_notes},
        )
        if completed is None:
            raise InvalidState("Meeting is already completed.")

        self._mark_discussed(completed["podcast"], meeting_id)
        logger.info(f"Meeting completed: {meeting_id}")
        return completed

    def delete_meeting(self, meeting_id: str, confirm_text: Optional[str]) -> None:
        meeting = self.get_meeting(meeting_id)
        if meeting is None:
            raise NotFound("Meeting not found.")

        completed = is_completed(meeting)
        if completed and confirm_text != "DELETE":
            raise ValidationError("Past meeting deletion requires typing DELETE.")

        db.meetings.remove(Q.id == meeting_id)
        db.carve_outs.remove(Q.meeting == meeting_id)
        if completed and meeting.get("podcast"):
            self._revert_podcast(meeting["podcast"], meeting_id)

        logger.info(f"Meeting deleted: {meeting_id}")


def _newest_first_key(meeting: dict):
    meeting_date = parse_datetime(meeting.get("date")) or EPOCH
    return meeting_date, meeting.get("created_at") or ""


def _podcast_summary(podcast: dict) -> dict:
    return {
        "id": podcast["id"],
        "title": podcast.get("title", ""),
        "host": podcast.get("host") or "",
        "episode_count": podcast.get("episode_count") or 0,
        "episode_names": podcast.get("episode_names") or "",
        "total_time_minutes": podcast.get("total_time_minutes") or 0,
        "link": podcast.get("link") or "",
        "notes": podcast.get("notes") or "",
    }


meeting_service = MeetingService()
