"""Legacy Import Tests"""

from datetime import datetime, timezone

import pytest

from podcast_club.services.database import Q
from podcast_club.services.imports.carveouts import derive_title_and_url, infer_carve_out_type
from podcast_club.services.imports.csv_tools import (
    column_index,
    parse_csv,
    parse_date_value,
    parse_positive_int,
    sanitize_batch_id,
)
from podcast_club.services.imports.pending_podcasts import normalize_rating, parse_duration_minutes
from tests.factories import create_carve_out, create_meeting, create_podcast

MEETINGS_CSV = (
    "Meeting Host Email,Podcast Title,Podcast Host,Meeting Date,Meeting Location,Podcast Submitted By Name\n"
    "ben@example.com,Serial,Sarah Koenig,2023-02-01,The Pub,Cara Other\n"
    "nobody@example.com,,,not a date,,\n"
)

MEETINGS_MAPPING = {
    "meetingHostEmail": "Meeting Host Email",
    "podcastTitle": "Podcast Title",
    "podcastHost": "Podcast Host",
    "meetingDate": "Meeting Date",
    "meetingLocation": "Meeting Location",
    "podcastSubmittedByName": "Podcast Submitted By Name",
}

CARVE_OUTS_CSV = (
    "Club Date,Ben,Cara,Zed\n"
    "2/1/2023,Project Hail Mary https://www.goodreads.com/book/show/1,Some film documentary,"
    "Great article https://example.com/post\n"
    "3/1/2023,Something,,\n"
    "garbage,Thing,,\n"
)

PENDING_CSV = (
    "Instructions: rate every podcast below\n"
    "Podcast Title,Podcast Host,# Episodes,Episode Names,Total Time,Link,Notes,Ben,Cara,missing\n"
    "Enter podcast here,Host,1,Pilot,30,https://example.com,,,,\n"
    "Serial,Sarah Koenig,12,All,1h 30m,https://serial.example,Season one,My podcast,I like it a lot.,\n"
    "Enter podcast here,,,,,,,,,\n"
    "Orphan,Someone,3,,45,,,Love it,,\n"
    "Crowded,Host,2,,60,,,My podcast,My podcast,\n"
)


# =============================================================================
# CSV helpers
# =============================================================================

class TestCsvHelpers:
    """Parsing and cell coercion"""

    def test_parse_csv_quotes_and_newlines(self):
        rows = parse_csv('a,"b, c"\n"multi\nline",d\n\n"say ""hi""",e\n')

        assert rows == [["a", "b, c"], ["multi\nline", "d"], ['say "hi"', "e"]]

    @pytest.mark.parametrize("value", ["2024-03-05", "3/5/2024", "45356", "March 5, 2024"])
    def test_parse_date_value(self, value):
        parsed = parse_date_value(value)

        assert parsed.date() == datetime(2024, 3, 5, tzinfo=timezone.utc).date()

    @pytest.mark.parametrize("value", ["", "12", "soon"])
    def test_parse_date_value_rejects(self, value):
        assert parse_date_value(value) is None

    def test_column_index(self):
        headers = ["podcast title", "host"]

        assert column_index(headers, {"podcastTitle": 1}, "podcastTitle", 0) == 1
        assert column_index(headers, {"podcastTitle": "Host"}, "podcastTitle", 0) == 1
        assert column_index(headers, {}, "host", None) == 1
        assert column_index(headers, {"podcastTitle": 7}, "podcastTitle", 0) == 0
        assert column_index(headers, {}, "podcastLink", None) is None

    def test_sanitize_batch_id(self):
        assert sanitize_batch_id("my batch/1", "legacy") == "my-batch-1"
        assert sanitize_batch_id("", "legacy").startswith("legacy-")

    def test_parse_positive_int(self):
        assert parse_positive_int("3.6", 1) == 4
        assert parse_positive_int("0", 1) == 1
        assert parse_positive_int("abc", 5) == 5

    @pytest.mark.parametrize("raw,minutes", [
        ("95", 95), ("1.5h", 90), ("40m", 40), ("1h 30m", 90), ("", 1), ("abc", 1),
    ])
    def test_parse_duration_minutes(self, raw, minutes):
        assert parse_duration_minutes(raw) == minutes

    def test_normalize_rating(self):
        assert normalize_rating("  My Podcast ") == "My podcast"
        assert normalize_rating("") == "No selection"
        assert normalize_rating("no selection.") == "No selection"
        assert normalize_rating("Love it") is None

    def test_derive_title_and_url(self):
        assert derive_title_and_url("Dune - https://example.com/dune.") == ("Dune", "https://example.com/dune")
        assert derive_title_and_url("https://example.com/x") == ("https://example.com/x", "https://example.com/x")
        assert derive_title_and_url("") == ("Imported carve out", "")

    def test_infer_carve_out_type(self):
        assert infer_carve_out_type("Hardcore History", "https://overcast.fm/x", "") == "podcast"
        assert infer_carve_out_type("Dune", "https://www.imdb.com/title/tt1", "") == "movie"
        assert infer_carve_out_type("Talk", "https://youtu.be/abc", "") == "video"
        assert infer_carve_out_type("A nice walk", "", "") == "other"


# =============================================================================
# Access
# =============================================================================

class TestImportAccess:
    """Imports are admin-only"""

    @pytest.mark.asyncio
    async def test_member_forbidden(self, test_client, member_headers):
        response = await test_client.post(
            "/imports/legacy-meetings", json={"csv": MEETINGS_CSV}, headers=member_headers
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_requires_csv(self, test_client, admin_headers):
        response = await test_client.post("/imports/legacy-meetings", json={"csv": "  "}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "csv is required."

    @pytest.mark.asyncio
    async def test_header_only_csv(self, test_client, admin_headers):
        response = await test_client.post(
            "/imports/legacy-meetings", json={"csv": "Meeting Date\n"}, headers=admin_headers
        )

        assert response.status_code == 400


# =============================================================================
# Meetings
# =============================================================================

class TestMeetingsImport:
    """Meeting history rows become completed meetings with discussed podcasts"""

    async def _import(self, client, headers, **options):
        return await client.post("/imports/legacy-meetings", json={
            "csv": MEETINGS_CSV,
            "mapping": MEETINGS_MAPPING,
            "options": {"batchId": "legacy-2023", **options},
        }, headers=headers)

    @pytest.mark.asyncio
    async def test_import(self, test_client, test_db, admin_user, admin_headers, member_user, other_member):
        response = await self._import(test_client, admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["batchId"] == "legacy-2023"
        assert data["dryRun"] is False
        assert data["rows"] == 2
        assert data["importedMeetings"] == 2
        assert data["importedPodcasts"] == 2
        assert data["warnings"] == [
            "Row 3: host not found in members; assigned to admin.",
            "Row 3: podcast title missing, fallback title applied.",
            "Row 3: meeting date missing/invalid, fallback date applied.",
        ]

        serial = next(p for p in test_db.podcasts.all() if p["title"] == "Serial")
        assert serial["status"] == "discussed"
        assert serial["host"] == "Sarah Koenig"
        assert serial["submitted_by"] == other_member["id"]
        assert serial["import_source"] == "legacy-meetings-csv"

        meeting = next(m for m in test_db.meetings.all() if m["id"] == serial["discussed_meeting"])
        assert meeting["host"] == member_user["id"]
        assert meeting["location"] == "The Pub"
        assert meeting["status"] == "completed"
        assert meeting["date"].startswith("2023-02-01")
        assert meeting["completed_at"] == meeting["date"]

        fallback = next(m for m in test_db.meetings.all() if m["id"] != meeting["id"])
        assert fallback["host"] == admin_user["id"]
        assert fallback["date"].startswith("2000-01-02")
        assert fallback["location"] == "12 Main St, Springfield, IL 62701"

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, test_client, test_db, admin_headers, member_user):
        response = await self._import(test_client, admin_headers, dryRun=True)

        assert response.json()["importedMeetings"] == 2
        assert response.json()["dryRun"] is True
        assert test_db.meetings.all() == []
        assert test_db.podcasts.all() == []

    @pytest.mark.asyncio
    async def test_list_and_rollback(self, test_client, test_db, admin_user, admin_headers, member_user):
        await self._import(test_client, admin_headers)
        test_db.meetings.insert(create_meeting(admin_user["id"], meeting_id="kept"))
        imported_meeting = test_db.meetings.search(Q.import_batch_id == "legacy-2023")[0]
        test_db.carve_outs.insert(create_carve_out(member_user["id"], imported_meeting["id"]))

        listing = await test_client.get("/imports/legacy-meetings", headers=admin_headers)
        assert listing.json() == {"batches": ["legacy-2023"]}

        response = await test_client.request("DELETE", "/imports/legacy-meetings", json={
            "batchId": "legacy-2023", "confirmText": "DELETE",
        }, headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"batchId": "legacy-2023", "deletedMeetings": 2, "deletedPodcasts": 2}
        assert [m["id"] for m in test_db.meetings.all()] == ["kept"]
        assert test_db.podcasts.all() == []
        assert test_db.carve_outs.all() == []

    @pytest.mark.asyncio
    async def test_rollback_requires_confirmation(self, test_client, admin_headers):
        response = await test_client.request("DELETE", "/imports/legacy-meetings", json={
            "batchId": "legacy-2023", "confirmText": "delete",
        }, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Type DELETE to confirm import rollback."


# =============================================================================
# Carve outs
# =============================================================================

class TestCarveOutsImport:
    """Carve-out grid rows attach to the meeting held on that date"""

    @pytest.mark.asyncio
    async def test_import(self, test_client, test_db, admin_user, admin_headers, member_user, other_member):
        test_db.meetings.insert(create_meeting(
            admin_user["id"], meeting_id="feb", date="2023-02-01T19:00:00+00:00", status="completed"
        ))

        response = await test_client.post("/imports/legacy-carveouts", json={
            "csv": CARVE_OUTS_CSV, "options": {"batchId": "co-1"},
        }, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["parsedEntries"] == 3
        assert data["importedCarveOuts"] == 3
        assert data["warnings"] == [
            "Row 2, column 4: member 'zed' not found; assigned to admin.",
            "Row 3: no meeting found for 3/1/2023; carve outs skipped for this row.",
            "Row 4: could not parse Club Date; row skipped.",
        ]

        by_title = {item["title"]: item for item in test_db.carve_outs.all()}
        book = by_title["Project Hail Mary"]
        assert book["type"] == "book"
        assert book["url"] == "https://www.goodreads.com/book/show/1"
        assert book["member"] == member_user["id"]
        assert book["meeting"] == "feb"
        assert by_title["Some film documentary"]["type"] == "movie"
        assert by_title["Some film documentary"]["member"] == other_member["id"]
        assert by_title["Great article"]["type"] == "article"
        assert by_title["Great article"]["member"] == admin_user["id"]

    @pytest.mark.asyncio
    async def test_requires_contributor_columns(self, test_client, admin_headers):
        response = await test_client.post(
            "/imports/legacy-carveouts", json={"csv": "Club Date\n2/1/2023\n"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["message"] == "No contributor columns found in CSV header."

    @pytest.mark.asyncio
    async def test_rollback(self, test_client, test_db, admin_user, admin_headers, member_user):
        test_db.meetings.insert(create_meeting(admin_user["id"], meeting_id="feb", date="2023-02-01T19:00:00+00:00"))
        test_db.carve_outs.insert(create_carve_out(member_user["id"], "feb", carve_out_id="manual"))
        await test_client.post("/imports/legacy-carveouts", json={
            "csv": CARVE_OUTS_CSV, "options": {"batchId": "co-1"},
        }, headers=admin_headers)

        response = await test_client.request("DELETE", "/imports/legacy-carveouts", json={
            "batchId": "co-1", "confirmText": "DELETE",
        }, headers=admin_headers)

        assert response.json()["deletedCarveOuts"] == 3
        assert [item["id"] for item in test_db.carve_outs.all()] == ["manual"]


# =============================================================================
# Pending podcasts
# =============================================================================

class TestPendingPodcastsImport:
    """Rating sheet rows become pending podcasts owned by their "My podcast" member"""

    @pytest.mark.asyncio
    async def test_import(self, test_client, test_db, admin_headers, member_user, other_member):
        response = await test_client.post("/imports/legacy-pending-podcasts", json={
            "csv": PENDING_CSV, "options": {"batchId": "pending-1"},
        }, headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["parsedRows"] == 3
        assert data["importedPodcasts"] == 2
        assert data["ratingColumns"] == ["Ben Member", "Cara Other"]
        assert data["warnings"] == [
            "Row 6, Ben Member: unrecognized rating 'Love it', treated as No selection.",
            "Row 6: no 'My podcast' owner found; row skipped.",
            "Row 7: multiple 'My podcast' owners found; using first match.",
        ]

        by_title = {podcast["title"]: podcast for podcast in test_db.podcasts.all()}
        assert set(by_title) == {"Serial", "Crowded"}

        serial = by_title["Serial"]
        assert serial["status"] == "pending"
        assert serial["submitted_by"] == member_user["id"]
        assert serial["episode_count"] == 12
        assert serial["total_time_minutes"] == 90
        assert {(r["member"], r["value"]) for r in serial["ratings"]} == {
            (member_user["id"], "My podcast"),
            (other_member["id"], "I like it a lot."),
        }

        crowded = by_title["Crowded"]
        assert crowded["submitted_by"] == member_user["id"]
        assert [r["member"] for r in crowded["ratings"]] == [member_user["id"]]

    @pytest.mark.asyncio
    async def test_too_few_rows(self, test_client, admin_headers):
        response = await test_client.post("/imports/legacy-pending-podcasts", json={
            "csv": "Instructions\nPodcast Title\n",
        }, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["message"] == (
            "CSV must include instruction row, header row, placeholder row, and data rows."
        )

    @pytest.mark.asyncio
    async def test_rollback_keeps_discussed(self, test_client, test_db, admin_headers, member_user, other_member):
        await test_client.post("/imports/legacy-pending-podcasts", json={
            "csv": PENDING_CSV, "options": {"batchId": "pending-1"},
        }, headers=admin_headers)
        test_db.podcasts.insert(create_podcast(
            member_user["id"], podcast_id="was-discussed", status="discussed",
            import_batch_id="pending-1", import_source="legacy-pending-podcasts-csv",
        ))

        response = await test_client.request("DELETE", "/imports/legacy-pending-podcasts", json={
            "batchId": "pending-1", "confirmText": "DELETE",
        }, headers=admin_headers)

        assert response.json() == {"batchId": "pending-1", "deletedPodcasts": 2}
        assert [podcast["id"] for podcast in test_db.podcasts.all()] == ["was-discussed"]
