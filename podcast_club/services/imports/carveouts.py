"""Legacy carve-out grid: one row per club date, one column per member"""

import re

from podcast_club.errors import ValidationError
from podcast_club.services.database import db, parse_datetime
from podcast_club.services.imports.base import ImportContext, LegacyImporter
from podcast_club.services.imports.csv_tools import (
    cell,
    column_index,
    date_key,
    first_name_key,
    normalize_header,
    parse_date_value,
)

_URL = re.compile(r"https?://[^\s\"<>]+", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[),.;]+$")

# Checked in order; first match wins
TYPE_HINTS = (
    ("podcast", ("podcast", "podcasts.apple.com", "spotify.com/show", "overcast.fm")),
    ("book", ("goodreads.com", "book", "novel", "memoir", "biography")),
    ("movie", ("movie", "film", "documentary", "imdb.com/title")),
    ("video", ("youtu.be", "youtube.com", "netflix.com", "netflix", "primevideo.com", "vimeo.com", "video")),
    ("article", ("substack.com", "medium.com", "nytimes.com", "article", "essay", "blog")),
)


def extract_first_url(text: str) -> str:
    match = _URL.search(text)
    if not match:
        return ""
    return _TRAILING_PUNCTUATION.sub("", match.group(0))


def derive_title_and_url(raw: str):
    """Split a free-text cell into (title, url)"""
    text = str(raw or "").strip()
    url = extract_first_url(text)
    if not url:
        return text[:200] or "Imported carve out", ""

    start = text.index(url)
    before = re.sub(r"[\s:;,-]+$", "", text[:start]).strip()
    after = re.sub(r"^[\s:;,-]+", "", text[start + len(url):]).strip()
    title = (before or after)[:200]
    return title or url, url


def infer_carve_out_type(title: str, url: str, notes: str) -> str:
    text = f"{title} {url} {notes}".lower()
    for carve_out_type, hints in TYPE_HINTS:
        if any(hint in text for hint in hints):
            return carve_out_type
    return "other"


class LegacyCarveOutsImporter(LegacyImporter):
    source = "legacy-carveouts-csv"
    batch_prefix = "legacy-carveouts"
    too_short_message = "CSV must include at least a header and one data row."

    def batch_tables(self) -> list:
        return [db.carve_outs]

    def import_rows(self, context: ImportContext) -> dict:
        headers = [normalize_header(header) for header in context.rows[0]]
        date_column = column_index(headers, context.mapping, "clubDate", 0)
        contributors = [
            (index, header) for index, header in enumerate(headers)
            if index != date_column and header
        ]
        if not contributors:
            raise ValidationError("No contributor columns found in CSV header.")

        members_by_first_name = {}
        for member in db.members.all():
            key = first_name_key(member.get("name"))
            if key and key not in members_by_first_name:
                members_by_first_name[key] = member

        meetings_by_date = {}
        for meeting in db.meetings.all():
            meeting_date = parse_datetime(meeting.get("date"))
            if meeting_date is not None:
                meetings_by_date.setdefault(date_key(meeting_date), meeting)

        parsed_entries = 0
        imported = 0
        for index, row in enumerate(context.rows[1:]):
            row_number = index + 2
            date_value = cell(row, date_column)
            club_date = parse_date_value(date_value)
            if club_date is None:
                if any(row):
                    context.warn(f"Row {row_number}: could not parse Club Date; row skipped.")
                continue

            meeting = meetings_by_date.get(date_key(club_date))
            if meeting is None:
                context.warn(f"Row {row_number}: no meeting found for {date_value}; carve outs skipped for this row.")
                continue

            for column, header in contributors:
                raw = cell(row, column)
                if not raw:
                    continue
                parsed_entries += 1

                member = members_by_first_name.get(first_name_key(header))
                if member is None:
                    member = context.admin
                    context.warn(
                        f"Row {row_number}, column {column + 1}: member '{header}' not found; assigned to admin."
                    )

                title, url = derive_title_and_url(raw)
                imported += 1
                if context.dry_run:
                    continue

                db.carve_outs.insert(db.new_document(
                    title=title,
                    type=infer_carve_out_type(title, url, raw),
                    url=url,
                    notes=raw,
                    member=member["id"],
                    meeting=meeting["id"],
                    **context.tag(),
                ))

        return {"parsed_entries": parsed_entries, "imported_carve_outs": imported}

    def delete_batch(self, batch_id: str) -> dict:
        deleted = db.carve_outs.remove(self.batch_query(batch_id))
        return {"deleted_carve_outs": len(deleted)}
