"""Podcast submissions, votes and listings"""

import logging
from typing import Optional

from podcast_club.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError, require_confirmation
from podcast_club.services import ranking
from podcast_club.services.database import Q, db
from podcast_club.services.meetings import is_completed
from podcast_club.services.ranking import MY_PODCAST, RATING_OPTIONS

logger = logging.getLogger(__name__)

PENDING = "pending"
DISCUSSED = "discussed"
REDACTED_MEMBER = {"id": "", "name": "Club Member"}


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return number


class PodcastService:
    """Rating engine: submissions, votes and the orderings built on them"""

    def get_podcast(self, podcast_id: str) -> Optional[dict]:
        return db.podcasts.get(Q.id == podcast_id)

    # =========================================================================
    # Views
    # =========================================================================

    def format_podcast(self, podcast: dict, members: list, meetings_by_id: Optional[dict] = None) -> dict:
        """Full member-facing view with derived score and missing voters"""
        names = {member["id"]: member.get("name", "") for member in members}

        def ref(member_id):
            return {"id": member_id or "", "name": names.get(member_id, "Unknown")}

        discussed_meeting = podcast.get("discussed_meeting")
        if meetings_by_id is None:
            meeting = db.meetings.get(Q.id == discussed_meeting) if discussed_meeting else None
        else:
            meeting = meetings_by_id.get(discussed_meeting)

        return {
            "id": podcast["id"],
            "title": podcast.get("title", ""),
            "host": podcast.get("host") or "",
            "episode_count": podcast.get("episode_count") or 0,
            "episode_names": podcast.get("episode_names") or "",
            "total_time_minutes": podcast.get("total_time_minutes") or 0,
            "link": podcast.get("link") or "",
            "notes": podcast.get("notes") or "",
            "status": podcast.get("status", PENDING),
            "submitted_by": ref(podcast.get("submitted_by")),
            "ratings": [
                {"member": ref(rating.get("member")), "value": rating.get("value"), "points": rating.get("points", 0)}
                for rating in podcast.get("ratings") or []
            ],
            "ranking_score": ranking.ranking_score(podcast),
            "missing_voters": ranking.missing_voters(podcast, members),
            "discussed_meeting": discussed_meeting,
            "discussed_meeting_date": meeting.get("date") if meeting else None,
            "created_at": podcast.get("created_at"),
        }

    def public_view(self, podcast: dict, meetings_by_id: dict) -> dict:
        """Anonymous view: no submitter identity and no individual ratings"""
        view = self.format_podcast(podcast, [], meetings_by_id)
        view["submitted_by"] = dict(REDACTED_MEMBER)
        view["ratings"] = []
        view["missing_voters"] = []
        return view

    def list_podcasts(self, authenticated: bool) -> list:
        meetings_by_id = {meeting["id"]: meeting for meeting in db.meetings.all()}
        if not authenticated:
            discussed = db.podcasts.search(Q.status == DISCUSSED)
            discussed.sort(key=lambda podcast: podcast.get("created_at") or "", reverse=True)
            return [self.public_view(podcast, meetings_by_id) for podcast in discussed]

        members = db.members.all()
        formatted = [self.format_podcast(podcast, members, meetings_by_id) for podcast in db.podcasts.all()]
        return ranking.sort_like_sheet(formatted)

    def discuss_queue(self) -> list:
        """Pending podcasts free to be picked for the next meeting"""
        meetings = db.meetings.all()
        attached = {
            meeting["podcast"] for meeting in meetings
            if meeting.get("podcast") and not is_completed(meeting)
        }
        members = db.members.all()
        meetings_by_id = {meeting["id"]: meeting for meeting in meetings}

        candidates = [
            podcast for podcast in db.podcasts.search(Q.status == PENDING)
            if podcast["id"] not in attached
        ]
        candidates.sort(key=lambda podcast: podcast.get("created_at") or "")
        formatted = [
            self.format_podcast(podcast, members, meetings_by_id)
            for podcast in ranking.dedupe_by_content(candidates)
        ]
        return ranking.sort_for_discussion(formatted)

    # =========================================================================
    # Operations
    # =========================================================================

    def submit_podcast(self, member_id: str, fields: dict) -> dict:
        title = str(fields.get("title") or "").strip()
        host = str(fields.get("host") or "").strip()
        episode_names = str(fields.get("episode_names") or "").strip()
        link = str(fields.get("link") or "").strip()
        notes = str(fields.get("notes") or "").strip()
        episode_count = _as_number(fields.get("episode_count"))
        total_time = _as_number(fields.get("total_time_minutes"))

        if not title or not host or not episode_names or not link or episode_count is None or total_time is None:
            raise ValidationError("Title, host, # of episodes, episode name(s), total time, and link are required.")
        if episode_count < 1 or total_time < 1 or not episode_count.is_integer():
            raise ValidationError("# of episodes must be a whole number, and total time must be at least 1 minute.")

        podcast = db.new_document(
            title=title,
            host=host,
            episode_count=int(episode_count),
            episode_names=episode_names,
            total_time_minutes=int(total_time) if total_time.is_integer() else total_time,
            link=link,
            notes=notes,
            submitted_by=member_id,
            ratings=[{"member": member_id, "value": MY_PODCAST, "points": ranking.rating_points(MY_PODCAST)}],
            status=PENDING,
            discussed_meeting=None,
            import_batch_id=None,
            import_source=None,
        )
        db.podcasts.insert(podcast)
        logger.info(f"Podcast submitted: {podcast['id']} by member {member_id}")
        return podcast

    def cast_vote(self, member_id: str, podcast_id: str, rating) -> dict:
        """Insert or replace the caller's rating on a pending podcast"""
        value = str(rating or "").strip()
        if value not in RATING_OPTIONS:
            raise ValidationError("A valid rating is required.")

        with db.lock:
            podcast = self.get_podcast(podcast_id)
            if podcast is None:
                raise NotFound("Podcast not found.")
            if podcast.get("status") != PENDING:
                raise InvalidState("Only pending podcasts can be rated.")

            is_submitter = podcast.get("submitted_by") == member_id
            if not is_submitter and value == MY_PODCAST:
                raise ValidationError('Only the member who submitted this podcast can use "My podcast".')
            if is_submitter and value != MY_PODCAST:
                raise ValidationError('You cannot change your own submitted podcast rating from "My podcast".')

            ratings = [dict(entry) for entry in podcast.get("ratings") or []]
            if value == MY_PODCAST and any(
                entry.get("value") == MY_PODCAST and entry.get("member") != member_id for entry in ratings
            ):
                raise ValidationError('"My podcast" has already been selected by another member for this podcast.')

            points = ranking.rating_points(value)
            for entry in ratings:
                if entry.get("member") == member_id:
                    entry["value"] = value
                    entry["points"] = points
                    break
            else:
                ratings.append({"member": member_id, "value": value, "points": points})

            updated = db.update_by_id(db.podcasts, podcast_id, {"ratings": ratings})

        return self.format_podcast(updated, db.members.all())

    def delete_podcast(self, member: dict, podcast_id: str, confirm_text: Optional[str]) -> dict:
        """Submitters may delete untouched podcasts; admins delete anything,
        taking attached meetings and their carve outs with it."""
        require_confirmation(confirm_text, "Type DELETE to confirm podcast deletion.")

        podcast = self.get_podcast(podcast_id)
        if podcast is None:
            raise NotFound("Podcast not found.")

        is_admin = bool(member.get("is_admin"))
        if not is_admin and podcast.get("submitted_by") != member["id"]:
            raise Forbidden("Only admins or the submitter can delete this podcast.")

        meeting_ids = [meeting["id"] for meeting in db.meetings.search(Q.podcast == podcast_id)]
        if not is_admin:
            if podcast.get("status") == DISCUSSED:
                raise Conflict("Discussed podcasts cannot be deleted.")
            if meeting_ids:
                raise Conflict("This podcast is attached to one or more meetings and cannot be deleted.")

        if meeting_ids:
            db.carve_outs.remove(Q.meeting.one_of(meeting_ids))
            db.meetings.remove(Q.id.one_of(meeting_ids))
        db.podcasts.remove(Q.id == podcast_id)

        logger.info(f"Podcast {podcast_id} deleted by member {member['id']} ({len(meeting_ids)} meetings removed)")
        return {"id": podcast["id"], "title": podcast.get("title", "")}


podcast_service = PodcastService()
