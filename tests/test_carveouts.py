"""Carve Out Tests"""

import pytest

from tests.factories import create_carve_out, create_meeting


@pytest.fixture
def meeting(test_db, admin_user) -> dict:
    meeting = create_meeting(admin_user["id"], date="2099-01-01T19:00:00+00:00")
    test_db.meetings.insert(meeting)
    return meeting


class TestCreateCarveOut:
    """Any member can add a carve out to an existing meeting"""

    @pytest.mark.asyncio
    async def test_create(self, test_client, member_user, member_headers, meeting):
        response = await test_client.post("/carveouts", json={
            "title": "Project Hail Mary", "type": "Book", "url": " https://example.com/phm ", "meeting": meeting["id"],
        }, headers=member_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "book"
        assert data["url"] == "https://example.com/phm"
        assert data["member"] == {"id": member_user["id"], "name": "Ben Member"}
        assert data["meeting"] == {"id": meeting["id"], "date": "2099-01-01T19:00:00+00:00"}

    @pytest.mark.asyncio
    async def test_type_defaults_to_other(self, test_client, member_headers, meeting):
        response = await test_client.post(
            "/carveouts", json={"title": "Thing", "meeting": meeting["id"]}, headers=member_headers
        )

        assert response.json()["type"] == "other"

    @pytest.mark.asyncio
    async def test_invalid_type(self, test_client, member_headers, meeting):
        response = await test_client.post(
            "/carveouts", json={"title": "Thing", "type": "game", "meeting": meeting["id"]}, headers=member_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_requires_title_and_meeting(self, test_client, member_headers, meeting):
        response = await test_client.post("/carveouts", json={"meeting": meeting["id"]}, headers=member_headers)

        assert response.status_code == 400
        assert response.json()["message"] == "title and meeting are required."

    @pytest.mark.asyncio
    async def test_unknown_meeting(self, test_client, member_headers):
        response = await test_client.post(
            "/carveouts", json={"title": "Thing", "meeting": "missing"}, headers=member_headers
        )

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_requires_session(self, test_client, meeting):
        response = await test_client.post("/carveouts", json={"title": "Thing", "meeting": meeting["id"]})

        assert response.status_code == 401


class TestEditCarveOut:
    """Owners and admins may edit or delete"""

    @pytest.mark.asyncio
    async def test_owner_edits(self, test_client, test_db, member_user, member_headers, meeting):
        carve_out = create_carve_out(member_user["id"], meeting["id"])
        test_db.carve_outs.insert(carve_out)

        response = await test_client.patch(f"/carveouts/{carve_out['id']}", json={
            "title": "Renamed", "type": "movie", "meeting": meeting["id"],
        }, headers=member_headers)

        assert response.status_code == 200
        assert response.json()["title"] == "Renamed"
        assert response.json()["type"] == "movie"

    @pytest.mark.asyncio
    async def test_other_member_cannot_edit(self, test_client, test_db, member_user, other_headers, meeting):
        carve_out = create_carve_out(member_user["id"], meeting["id"])
        test_db.carve_outs.insert(carve_out)

        response = await test_client.patch(
            f"/carveouts/{carve_out['id']}", json={"title": "Mine now", "meeting": meeting["id"]}, headers=other_headers
        )

        assert response.status_code == 403
        assert response.json()["message"] == (
            "Only admins or the member who submitted this carve out can edit it."
        )

    @pytest.mark.asyncio
    async def test_admin_deletes(self, test_client, test_db, member_user, admin_headers, meeting):
        carve_out = create_carve_out(member_user["id"], meeting["id"])
        test_db.carve_outs.insert(carve_out)

        response = await test_client.request(
            "DELETE", f"/carveouts/{carve_out['id']}", json={"confirmText": "DELETE"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["id"] == carve_out["id"]
        assert test_db.carve_outs.all() == []

    @pytest.mark.asyncio
    async def test_delete_requires_confirmation(self, test_client, test_db, member_user, member_headers, meeting):
        carve_out = create_carve_out(member_user["id"], meeting["id"])
        test_db.carve_outs.insert(carve_out)

        response = await test_client.request(
            "DELETE", f"/carveouts/{carve_out['id']}", json={}, headers=member_headers
        )

        assert response.status_code == 400
        assert len(test_db.carve_outs.all()) == 1


class TestListCarveOuts:
    """Listing for members and visitors"""

    @pytest.mark.asyncio
    async def test_anonymous_listing_hides_members(self, test_client, test_db, member_user, meeting):
        test_db.carve_outs.insert(create_carve_out(member_user["id"], meeting["id"], title="Visible"))
        test_db.carve_outs.insert(create_carve_out(member_user["id"], "gone", title="Orphan"))

        response = await test_client.get("/carveouts")

        assert response.status_code == 200
        data = response.json()
        assert [item["title"] for item in data] == ["Visible"]
        assert data[0]["member"] == {"id": "", "name": "Club Member"}
        assert member_user["id"] not in response.text

    @pytest.mark.asyncio
    async def test_member_listing_newest_first(self, test_client, test_db, member_user, member_headers, meeting):
        test_db.carve_outs.insert(create_carve_out(
            member_user["id"], meeting["id"], title="Older", created_at="2024-01-01T00:00:00+00:00"
        ))
        test_db.carve_outs.insert(create_carve_out(
            member_user["id"], meeting["id"], title="Newer", created_at="2024-02-01T00:00:00+00:00"
        ))

        response = await test_client.get("/carveouts", headers=member_headers)

        assert [item["title"] for item in response.json()] == ["Newer", "Older"]
        assert response.json()[0]["member"]["name"] == "Ben Member"
