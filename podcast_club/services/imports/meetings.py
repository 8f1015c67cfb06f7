"""Legacy meeting history: one discussed podcast + completed meeting per row"""

from datetime import datetime, timedelta, timezone

from podcast_club.services.address import format_address
from podcast_club.services.database import Q, db
from podcast_club.services.imports.base import ImportContext, LegacyImporter
from podcast_club.services.imports.csv_tools import (
    cell,
    column_index,
    normalize_header,
    parse_date_value,
    parse_positive_int,
)

# Rows without a usable date are spread out from here, one day per row
FALLBACK_DATE = datetime(2000, 1, 1, tzinfo=timezone.utc)

COLUMN_KEYS = (
    "meetingHostEmail",
    "meetingHostName",
    "podcastSubmittedByEmail",
    "podcastSubmittedByName",
    "podcastTitle",
    "podcastHost",
    "podcastEpisodeNames",
    "podcastLink",
    "podcastNotes",
    "podcastEpisodeCount",
    "podcastTotalTimeMinutes",
    "meetingDate",
    "meetingLocation",
    "meetingNotes",
)


class LegacyMeetingsImporter(LegacyImporter):
    source = "legacy-meetings-csv"
    batch_prefix = "legacy"

    def batch_tables(self) -> list:
        return [db.meetings, db.podcasts]

    def import_rows(self, context: ImportContext) -> dict:
        headers = [normalize_header(header) for header in context.rows[0]]
        columns = {key: column_index(headers, context.mapping, key, None) for key in COLUMN_KEYS}

        members = db.members.all()
        by_email = {member["email"].lower(): member for member in members if member.get("email")}
        by_name = {member["name"].lower(): member for member in members if member.get("name")}
        fallback_host = context.admin

        imported = 0
        for index, row in enumerate(context.rows[1:]):
            row_number = index + 2
            if not any(row):
                continue

            values = {key: cell(row, column) for key, column in columns.items()}

            host_email = values["meetingHostEmail"].lower()
            host_name = values["meetingHostName"].lower()
            host = by_email.get(host_email) or by_name.get(host_name)
            if host is None:
                host = fallback_host
                if host_email or host_name:
                    context.warn(f"Row {row_number}: host not found in members; assigned to admin.")

            submitter = (
                by_email.get(values["podcastSubmittedByEmail"].lower())
                or by_name.get(values["podcastSubmittedByName"].lower())
                or host
            )

            title = values["podcastTitle"]
            if not title:
                title = f"Imported podcast {row_number}"
                context.warn(f"Row {row_number}: podcast title missing, fallback title applied.")

            meeting_date = parse_date_value(values["meetingDate"])
            if meeting_date is None:
                meeting_date = FALLBACK_DATE + timedelta(days=index)
                context.warn(f"Row {row_number}: meeting date missing/invalid, fallback date applied.")

            imported += 1
            if context.dry_run:
                continue

            podcast = db.new_document(
                title=title,
                host=values["podcastHost"] or "Unknown",
                episode_count=parse_positive_int(values["podcastEpisodeCount"], 1),
                episode_names=values["podcastEpisodeNames"] or "Unknown",
                total_time_minutes=parse_positive_int(values["podcastTotalTimeMinutes"], 1),
                link=values["podcastLink"] or "#",
                notes=values["podcastNotes"],
                submitted_by=submitter["id"],
                ratings=[],
                status="discussed",
                discussed_meeting=None,
                **context.tag(),
            )
            meeting = db.new_document(
                date=meeting_date.isoformat(),
                host=host["id"],
                podcast=podcast["id"],
                location=values["meetingLocation"] or format_address(host) or "Unknown",
                notes=values["meetingNotes"],
                status="completed",
                completed_at=meeting_date.isoformat(),
                **context.tag(),
            )
            podcast["discussed_meeting"] = meeting["id"]
            db.podcasts.insert(podcast)
            db.meetings.insert(meeting)

        return {"rows": len(context.rows) - 1, "imported_meetings": imported, "imported_podcasts": imported}

    def delete_batch(self, batch_id: str) -> dict:
        cond = self.batch_query(batch_id)
        meeting_ids = [meeting["id"] for meeting in db.meetings.search(cond)]
        deleted_meetings = db.meetings.remove(cond)
        deleted_podcasts = db.podcasts.remove(cond)
        if meeting_ids:
            db.carve_outs.remove(Q.meeting.one_of(meeting_ids))
        return {"deleted_meetings": len(deleted_meetings), "deleted_podcasts": len(deleted_podcasts)}
