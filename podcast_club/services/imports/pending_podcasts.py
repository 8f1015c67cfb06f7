"""Legacy "podcasts to discuss" sheet with one rating column per member.

Layout: row 1 holds instructions, row 2 the headers, row 3 a placeholder
example; data starts on row 4.
"""

import re
from typing import Optional

from podcast_club.services.database import Q, db
from podcast_club.services.imports.base import ImportContext, LegacyImporter
from podcast_club.services.imports.csv_tools import (
    cell,
    column_index,
    first_name_key,
    normalize_header,
    parse_positive_int,
)
from podcast_club.services.ranking import MY_PODCAST, NO_SELECTION, rating_points

IGNORED_HEADERS = {"missing", "_sortkey"}
PLACEHOLDER_TITLE = "enter podcast here"

KNOWN_RATINGS = {
    "my podcast": MY_PODCAST,
    "meh": "Meh",
    "i like it.": "I like it.",
    "i like it a lot.": "I like it a lot.",
    "no selection": NO_SELECTION,
    "no selection.": NO_SELECTION,
}

_HOURS = re.compile(r"(\d+(?:\.\d+)?)\s*h")
_MINUTES = re.compile(r"(\d+(?:\.\d+)?)\s*m")


def normalize_rating(value) -> Optional[str]:
    """Canonical rating for a sheet cell; None when unrecognized"""
    text = str(value or "").strip().lower()
    if not text:
        return NO_SELECTION
    return KNOWN_RATINGS.get(text)


def parse_duration_minutes(value) -> int:
    """Minutes from "95", "1.5h", "40m" or "1h 30m"; defaults to 1"""
    raw = str(value or "").strip().lower()
    if not raw:
        return 1
    try:
        number = float(raw)
    except ValueError:
        number = None
    if number is not None and 0 < number < float("inf"):
        return max(1, round(number))

    hours = _HOURS.search(raw)
    minutes = _MINUTES.search(raw)
    total = (float(hours.group(1)) * 60 if hours else 0) + (float(minutes.group(1)) if minutes else 0)
    if total > 0:
        return max(1, round(total))
    return 1


class LegacyPendingPodcastsImporter(LegacyImporter):
    source = "legacy-pending-podcasts-csv"
    batch_prefix = "legacy-pending"
    min_rows = 4
    too_short_message = "CSV must include instruction row, header row, placeholder row, and data rows."

    def batch_tables(self) -> list:
        return [db.podcasts]

    def import_rows(self, context: ImportContext) -> dict:
        headers = [normalize_header(header) for header in context.rows[1]]
        mapping = context.mapping
        title_col = column_index(headers, mapping, "podcastTitle", 0)
        host_col = column_index(headers, mapping, "podcastHost", 1)
        count_col = column_index(headers, mapping, "podcastEpisodeCount", 2)
        names_col = column_index(headers, mapping, "podcastEpisodeNames", 3)
        time_col = column_index(headers, mapping, "podcastTotalTimeMinutes", 4)
        link_col = column_index(headers, mapping, "podcastLink", 5)
        notes_col = column_index(headers, mapping, "podcastNotes", 6)

        members_by_first_name = {}
        for member in db.members.all():
            key = first_name_key(member.get("name"))
            if key and key not in members_by_first_name:
                members_by_first_name[key] = member

        rating_columns = [
            (index, members_by_first_name[header])
            for index, header in enumerate(headers)
            if header
            and index > notes_col
            and header not in IGNORED_HEADERS
            and header in members_by_first_name
        ]

        parsed_rows = 0
        imported = 0
        for index, row in enumerate(context.rows[3:]):
            row_number = index + 4
            title = cell(row, title_col)
            if not title or title.lower().startswith(PLACEHOLDER_TITLE):
                continue
            parsed_rows += 1

            ratings = []
            owners = []
            for column, member in rating_columns:
                raw = cell(row, column)
                value = normalize_rating(raw)
                if value is None:
                    context.warn(
                        f"Row {row_number}, {member['name']}: unrecognized rating '{raw}', treated as No selection."
                    )
                    continue
                if value == NO_SELECTION:
                    continue
                ratings.append({"member": member["id"], "value": value, "points": rating_points(value)})
                if value == MY_PODCAST:
                    owners.append(member["id"])

            if not owners:
                context.warn(f"Row {row_number}: no 'My podcast' owner found; row skipped.")
                continue
            if len(owners) > 1:
                context.warn(f"Row {row_number}: multiple 'My podcast' owners found; using first match.")
                # Only the submitter may hold "My podcast"
                ratings = [
                    rating for rating in ratings
                    if rating["value"] != MY_PODCAST or rating["member"] == owners[0]
                ]

            imported += 1
            if context.dry_run:
                continue

            db.podcasts.insert(db.new_document(
                title=title,
                host=cell(row, host_col) or "Unknown",
                episode_count=parse_positive_int(cell(row, count_col), 1),
                episode_names=cell(row, names_col) or "Unknown",
                total_time_minutes=parse_duration_minutes(cell(row, time_col)),
                link=cell(row, link_col) or "#",
                notes=cell(row, notes_col),
                submitted_by=owners[0],
                ratings=ratings,
                status="pending",
                discussed_meeting=None,
                **context.tag(),
            ))

        return {
            "parsed_rows": parsed_rows,
            "imported_podcasts": imported,
            "rating_columns": [member["name"] for _, member in rating_columns],
        }

    def delete_batch(self, batch_id: str) -> dict:
        deleted = db.podcasts.remove(self.batch_query(batch_id) & (Q.status == "pending"))
        return {"deleted_podcasts": len(deleted)}
