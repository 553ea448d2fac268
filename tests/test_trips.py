"""
Tests for trip routes: CRUD, listing, membership, sub-collections and the
role checks guarding every mutation.
"""
import pytest
from sqlmodel import select

from tests.conftest import auth_headers, make_items, make_trip
from tripsync.models.models import (ItineraryItem, MemberRole, Trip,
                                    TripComment)

NEW_TRIP = {"title": "Rome", "country": {"name": "Italy", "flag": "IT"}}


def trip_state(session, trip_id):
    session.expire_all()
    trip = session.get(Trip, trip_id)
    return (
        trip.title,
        trip.is_favorite,
        trip.share_token,
        sorted((i.id, i.day, i.order, i.title) for i in trip.itinerary),
        sorted((m.user, m.role) for m in trip.memberships),
        len(trip.comments),
        len(trip.expenses),
    )


class TestAuthentication:
    def test_missing_token(self, client):
        response = client.get("/api/trips")
        assert response.status_code == 401
        assert response.json()["detail"] == "auth_required"

    def test_bad_token(self, client):
        response = client.get("/api/trips", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "auth_failed"


class TestTripCrud:
    def test_create_and_read(self, client):
        response = client.post("/api/trips", json=NEW_TRIP, headers=auth_headers("alice"))
        assert response.status_code == 200
        trip = response.json()
        assert trip["owner"] == "alice"
        assert trip["title"] == "Rome"
        assert trip["itinerary"] == []
        assert trip["shared"] is False
        assert trip["budget"]["currency"] == "USD"

        response = client.get(f"/api/trips/{trip['id']}", headers=auth_headers("alice"))
        assert response.status_code == 200
        assert response.json()["country"]["name"] == "Italy"

    def test_non_member_cannot_see_trip(self, client, trip):
        response = client.get(f"/api/trips/{trip.id}", headers=auth_headers("dave"))
        assert response.status_code == 404

    def test_missing_trip(self, client):
        assert client.get("/api/trips/999", headers=auth_headers("alice")).status_code == 404

    def test_editor_updates_metadata(self, client, trip):
        response = client.put(
            f"/api/trips/{trip.id}", json={"title": "Porto", "notes": "rainy"}, headers=auth_headers("bob")
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Porto"
        assert response.json()["notes"] == "rainy"

    def test_update_rejects_null_title(self, client, trip):
        response = client.put(f"/api/trips/{trip.id}", json={"title": None}, headers=auth_headers("alice"))
        assert response.status_code == 400

    def test_only_owner_deletes(self, client, session, trip):
        trip_id = trip.id
        assert client.delete(f"/api/trips/{trip_id}", headers=auth_headers("bob")).status_code == 403
        assert client.delete(f"/api/trips/{trip_id}", headers=auth_headers("alice")).status_code == 200
        session.expire_all()
        assert session.get(Trip, trip_id) is None

    def test_toggle_favorite(self, client, trip):
        response = client.patch(f"/api/trips/{trip.id}/favorite", headers=auth_headers("bob"))
        assert response.json() == {"is_favorite": True}
        response = client.patch(f"/api/trips/{trip.id}/favorite", headers=auth_headers("bob"))
        assert response.json() == {"is_favorite": False}


class TestViewerCannotMutate:
    @pytest.mark.parametrize(
        "method,path,body",
        [
            ("put", "", {"title": "Hacked"}),
            ("delete", "", None),
            ("patch", "/favorite", None),
            ("post", "/share", None),
            ("delete", "/share", None),
            ("post", "/members", {"user": "dave"}),
            ("delete", "/members/bob", None),
            ("post", "/itinerary", {"title": "Museum"}),
            ("put", "/itinerary/reorder", {"day": 1, "item_ids": []}),
            ("post", "/itinerary/days/duplicate", {"from_day": 1, "to_day": 2}),
            ("delete", "/itinerary/days/1", None),
            ("put", "/itinerary/{item}", {"title": "Renamed"}),
            ("delete", "/itinerary/{item}", None),
            ("post", "/comments", {"content": "hi"}),
            ("post", "/expenses", {"title": "Taxi", "amount": 12}),
        ],
    )
    def test_forbidden_and_unchanged(self, client, session, trip, method, path, body):
        item = make_items(session, trip, [(1, 0)])[0]
        before = trip_state(session, trip.id)

        url = f"/api/trips/{trip.id}{path.format(item=item.id)}"
        kwargs = {"headers": auth_headers("carol")}
        if body is not None:
            kwargs["json"] = body
        response = client.request(method.upper(), url, **kwargs)

        assert response.status_code == 403
        assert trip_state(session, trip.id) == before

    def test_viewer_can_read(self, client, trip):
        assert client.get(f"/api/trips/{trip.id}", headers=auth_headers("carol")).status_code == 200
        assert client.get(f"/api/trips/{trip.id}/itinerary", headers=auth_headers("carol")).status_code == 200


class TestListing:
    def test_owner_and_member_trips(self, client, session, users):
        own = make_trip(session, owner="bob")
        shared = make_trip(session, owner="alice", members={"bob": MemberRole.VIEWER})
        make_trip(session, owner="carol")

        response = client.get("/api/trips", headers=auth_headers("bob"))
        assert response.status_code == 200
        body = response.json()
        assert {t["id"] for t in body["trips"]} == {own.id, shared.id}
        assert body["pagination"]["total_trips"] == 2

    def test_pagination(self, client, session, users):
        for _ in range(5):
            make_trip(session, owner="dave")

        response = client.get("/api/trips?page=2&limit=2", headers=auth_headers("dave"))
        pagination = response.json()["pagination"]
        assert len(response.json()["trips"]) == 2
        assert pagination == {
            "current_page": 2,
            "total_pages": 3,
            "total_trips": 5,
            "has_next_page": True,
            "has_prev_page": True,
        }

    def test_favorite_filter(self, client, session, users):
        favorite = make_trip(session, owner="dave")
        make_trip(session, owner="dave")
        client.patch(f"/api/trips/{favorite.id}/favorite", headers=auth_headers("dave"))

        response = client.get("/api/trips?favorite=true", headers=auth_headers("dave"))
        assert [t["id"] for t in response.json()["trips"]] == [favorite.id]

    def test_stats(self, client, session, users):
        make_trip(session, owner="dave")
        client.post("/api/trips", json=NEW_TRIP, headers=auth_headers("dave"))

        stats = client.get("/api/trips/stats/overview", headers=auth_headers("dave")).json()
        assert stats["total_trips"] == 2
        assert stats["favorite_trips"] == 0
        assert sorted(stats["countries_visited"]) == ["Italy", "Portugal"]
        assert sum(month["count"] for month in stats["trips_over_time"]) == 2

    def test_bulk_delete_only_owned(self, client, session, trip):
        own = make_trip(session, owner="bob")
        response = client.post(
            "/api/trips/bulk-delete", json={"trip_ids": [own.id, trip.id]}, headers=auth_headers("bob")
        )
        assert response.json() == {"deleted_count": 1}
        session.expire_all()
        assert session.get(Trip, trip.id) is not None

    @pytest.mark.parametrize("trip_ids", [[], list(range(1, 52))])
    def test_bulk_delete_limits(self, client, users, trip_ids):
        response = client.post("/api/trips/bulk-delete", json={"trip_ids": trip_ids}, headers=auth_headers("alice"))
        assert response.status_code == 400


class TestMembers:
    def test_listing_puts_owner_first(self, client, trip):
        members = client.get(f"/api/trips/{trip.id}/members", headers=auth_headers("carol")).json()
        assert [(m["user"], m["role"]) for m in members] == [
            ("alice", "owner"),
            ("bob", "editor"),
            ("carol", "viewer"),
        ]

    def test_add_update_remove(self, client, trip):
        url = f"/api/trips/{trip.id}/members"
        response = client.post(url, json={"user": "dave", "role": "editor"}, headers=auth_headers("alice"))
        assert response.status_code == 200
        assert response.json()["added_by"] == "alice"
        assert client.get(f"/api/trips/{trip.id}", headers=auth_headers("dave")).status_code == 200

        response = client.put(f"{url}/dave", json={"role": "viewer"}, headers=auth_headers("alice"))
        assert response.json()["role"] == "viewer"
        response = client.post(f"/api/trips/{trip.id}/comments", json={"content": "x"}, headers=auth_headers("dave"))
        assert response.status_code == 403

        assert client.delete(f"{url}/dave", headers=auth_headers("alice")).status_code == 200
        assert client.get(f"/api/trips/{trip.id}", headers=auth_headers("dave")).status_code == 404

    @pytest.mark.parametrize(
        "payload,status",
        [
            ({"user": "bob"}, 409),
            ({"user": "alice"}, 409),
            ({"user": "ghost"}, 404),
            ({"user": "dave", "role": "owner"}, 400),
        ],
    )
    def test_add_rejections(self, client, trip, payload, status):
        response = client.post(f"/api/trips/{trip.id}/members", json=payload, headers=auth_headers("alice"))
        assert response.status_code == status

    def test_owner_cannot_be_removed(self, client, trip):
        response = client.delete(f"/api/trips/{trip.id}/members/alice", headers=auth_headers("alice"))
        assert response.status_code == 400

    def test_editor_cannot_manage_members(self, client, trip):
        response = client.post(f"/api/trips/{trip.id}/members", json={"user": "dave"}, headers=auth_headers("bob"))
        assert response.status_code == 403


class TestItineraryRoutes:
    def test_editor_appends_with_trip_wide_order(self, client, session, trip):
        make_items(session, trip, [(1, 0), (2, 0)])

        response = client.post(
            f"/api/trips/{trip.id}/itinerary", json={"title": "Museum", "day": 1}, headers=auth_headers("bob")
        )
        assert response.status_code == 200
        assert response.json()["order"] == 2
        assert response.json()["status"] == "planned"

    def test_reorder(self, client, session, trip):
        a, b, c = make_items(session, trip, [(1, 0), (1, 1), (1, 2)])

        response = client.put(
            f"/api/trips/{trip.id}/itinerary/reorder",
            json={"day": 1, "item_ids": [b.id, a.id, c.id]},
            headers=auth_headers("bob"),
        )
        assert response.status_code == 200
        assert [(i["id"], i["order"]) for i in response.json()] == [(b.id, 0), (a.id, 1), (c.id, 2)]

    def test_reorder_unknown_item(self, client, session, trip):
        a = make_items(session, trip, [(1, 0)])[0]
        response = client.put(
            f"/api/trips/{trip.id}/itinerary/reorder",
            json={"day": 1, "item_ids": [a.id, 999]},
            headers=auth_headers("bob"),
        )
        assert response.status_code == 404

    def test_duplicate_day(self, client, session, trip):
        make_items(session, trip, [(1, 0), (1, 1), (1, 2), (2, 0)])

        response = client.post(
            f"/api/trips/{trip.id}/itinerary/days/duplicate",
            json={"from_day": 1, "to_day": 2},
            headers=auth_headers("bob"),
        )
        assert response.status_code == 200
        assert [i["order"] for i in response.json()] == [1, 2, 3]

        itinerary = client.get(f"/api/trips/{trip.id}/itinerary", headers=auth_headers("bob")).json()
        day2 = [i for i in itinerary if i["day"] == 2]
        assert [i["order"] for i in day2] == [0, 1, 2, 3]

    def test_duplicate_empty_day(self, client, trip):
        response = client.post(
            f"/api/trips/{trip.id}/itinerary/days/duplicate",
            json={"from_day": 3, "to_day": 4},
            headers=auth_headers("bob"),
        )
        assert response.status_code == 400

    def test_delete_day_with_renumber(self, client, session, trip):
        make_items(session, trip, [(1, 0), (2, 0), (3, 4), (3, 1), (4, 0)])

        response = client.delete(f"/api/trips/{trip.id}/itinerary/days/2?renumber=true", headers=auth_headers("bob"))
        assert response.status_code == 200
        assert [(i["day"], i["order"], i["title"]) for i in response.json()] == [
            (1, 0, "stop 0"),
            (2, 0, "stop 3"),
            (2, 1, "stop 2"),
            (3, 0, "stop 4"),
        ]

    def test_delete_day_without_renumber(self, client, session, trip):
        make_items(session, trip, [(1, 0), (2, 0), (3, 0)])
        response = client.delete(f"/api/trips/{trip.id}/itinerary/days/2", headers=auth_headers("bob"))
        assert [i["day"] for i in response.json()] == [1, 3]

    def test_update_and_delete_item(self, client, session, trip):
        a, b = make_items(session, trip, [(1, 0), (1, 1)])
        url = f"/api/trips/{trip.id}/itinerary"

        response = client.put(f"{url}/{a.id}", json={"day": 2, "status": "done"}, headers=auth_headers("bob"))
        assert response.json()["day"] == 2
        assert response.json()["order"] == 0
        assert response.json()["status"] == "done"

        assert client.delete(f"{url}/{b.id}", headers=auth_headers("bob")).status_code == 200
        assert [i["id"] for i in client.get(url, headers=auth_headers("bob")).json()] == [a.id]
        assert session.exec(select(ItineraryItem).where(ItineraryItem.id == b.id)).first() is None

    def test_item_of_another_trip(self, client, session, trip):
        other = make_trip(session, owner="bob")
        foreign = make_items(session, other, [(1, 0)])[0]
        response = client.put(
            f"/api/trips/{trip.id}/itinerary/{foreign.id}", json={"title": "x"}, headers=auth_headers("bob")
        )
        assert response.status_code == 404


class TestSubCollections:
    def test_comments(self, client, session, trip):
        url = f"/api/trips/{trip.id}/comments"
        response = client.post(url, json={"content": "  See you there  "}, headers=auth_headers("bob"))
        assert response.status_code == 200
        comment = response.json()
        assert comment["content"] == "See you there"
        assert comment["user"] == "bob"

        assert client.post(url, json={"content": "   "}, headers=auth_headers("bob")).status_code == 422
        assert [c["id"] for c in client.get(url, headers=auth_headers("carol")).json()] == [comment["id"]]

        assert client.delete(f"{url}/{comment['id']}", headers=auth_headers("bob")).status_code == 200
        assert session.exec(select(TripComment)).all() == []

    def test_expenses(self, client, trip):
        url = f"/api/trips/{trip.id}/expenses"
        response = client.post(
            url, json={"title": "Tram", "amount": 3.5, "category": "transport"}, headers=auth_headers("bob")
        )
        assert response.status_code == 200
        expense_id = response.json()["id"]
        assert response.json()["currency"] == "USD"

        assert [e["id"] for e in client.get(url, headers=auth_headers("carol")).json()] == [expense_id]
        assert client.delete(f"{url}/{expense_id}", headers=auth_headers("bob")).status_code == 200
        assert client.delete(f"{url}/{expense_id}", headers=auth_headers("bob")).status_code == 404

    def test_receipts(self, client, trip, tmp_path):
        url = f"/api/trips/{trip.id}/receipts"
        response = client.post(
            url,
            files=[("files", ("ticket.pdf", b"%PDF-1.4 ticket", "application/pdf"))],
            headers=auth_headers("bob"),
        )
        assert response.status_code == 200
        receipt = response.json()[0]
        assert receipt["original_name"] == "ticket.pdf"
        assert receipt["uploaded_by"] == "bob"
        stored = list((tmp_path / "receipts" / str(trip.id)).iterdir())
        assert len(stored) == 1

        assert client.delete(f"{url}/{receipt['id']}", headers=auth_headers("bob")).status_code == 200
        assert list((tmp_path / "receipts" / str(trip.id)).iterdir()) == []

    def test_receipt_type_rejected(self, client, trip):
        response = client.post(
            f"/api/trips/{trip.id}/receipts",
            files=[("files", ("run.sh", b"#!/bin/sh", "text/x-shellscript"))],
            headers=auth_headers("bob"),
        )
        assert response.status_code == 400

    def test_failed_upload_leaves_no_files(self, client, session, trip, tmp_path):
        response = client.post(
            f"/api/trips/{trip.id}/receipts",
            files=[
                ("files", ("a.pdf", b"%PDF-1.4 ticket", "application/pdf")),
                ("files", ("b.pdf", b"", "application/pdf")),
            ],
            headers=auth_headers("bob"),
        )
        assert response.status_code == 400

        folder = tmp_path / "receipts" / str(trip.id)
        assert not folder.exists() or list(folder.iterdir()) == []
        session.expire_all()
        assert session.get(Trip, trip.id).receipts == []
