"""
API Tests for shelter requests, fulfillment and donations
"""
from decimal import Decimal

import pytest
from sqlmodel import Session, select

from models import Donation, DonationStatus, Match


@pytest.fixture
def shelter(register):
    return register("shelter", location="Harbor", capacity=30)


@pytest.fixture
def donor(register):
    return register("donor")


@pytest.fixture
def open_request(client, shelter):
    response = client.post(
        "/requests",
        json={"request_type": "Rice", "quantity": 100, "unit": "kg", "urgency_level": "High"},
        headers=shelter["headers"],
    )
    assert response.status_code == 201, response.text
    return response.json()["request"]


def _fulfill(client, donor, request_id, quantity, unit="kg"):
    return client.post(
        f"/requests/{request_id}/fulfill",
        json={
            "foodType": "Rice",
            "quantity": quantity,
            "unit": unit,
            "pickupLocation": "7 Mill Lane",
            # extra fields the web client sends are ignored
            "shelterName": "Harbor",
        },
        headers=donor["headers"],
    )


class TestCreateRequest:

    def test_create(self, open_request):
        assert open_request["status"] == "Open"
        assert Decimal(str(open_request["quantity"])) == Decimal("100")
        assert open_request["urgency_level"] == "High"

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_non_positive_quantity(self, client, shelter, quantity):
        response = client.post(
            "/requests",
            json={"request_type": "Rice", "quantity": quantity, "unit": "kg"},
            headers=shelter["headers"],
        )
        assert response.status_code == 400

    def test_missing_unit(self, client, shelter):
        response = client.post(
            "/requests",
            json={"request_type": "Rice", "quantity": 1},
            headers=shelter["headers"],
        )
        assert response.status_code == 400

    def test_requires_auth(self, client):
        response = client.post(
            "/requests", json={"request_type": "Rice", "quantity": 1, "unit": "kg"}
        )
        assert response.status_code == 401

    def test_listed_publicly_and_for_owner(self, client, shelter, open_request):
        public = client.get("/requests").json()["requests"]
        mine = client.get("/shelter/requests", headers=shelter["headers"]).json()["requests"]

        assert [r["id"] for r in public] == [open_request["id"]]
        assert [r["id"] for r in mine] == [open_request["id"]]
        assert client.get(f"/requests/{open_request['id']}").status_code == 200
        assert client.get("/requests/999").status_code == 404


class TestFulfill:

    def test_partial_then_full(self, client, donor, open_request):
        first = _fulfill(client, donor, open_request["id"], 60)
        assert first.status_code == 201
        assert first.json()["requestStatus"] == "Matched"
        assert first.json()["donationId"]

        request = client.get(f"/requests/{open_request['id']}").json()
        assert Decimal(str(request["quantity"])) == Decimal("40")

        second = _fulfill(client, donor, open_request["id"], 40)
        assert second.status_code == 201
        assert second.json()["requestStatus"] == "Fulfilled"

        # fulfilled requests drop off the public board
        assert client.get("/requests").json()["requests"] == []

    def test_already_fulfilled(self, client, donor, open_request):
        _fulfill(client, donor, open_request["id"], 100)

        response = _fulfill(client, donor, open_request["id"], 1)

        assert response.status_code == 400
        assert response.json()["code"] == "ALREADY_FULFILLED"

    def test_unit_mismatch(self, client, engine, donor, open_request):
        response = _fulfill(client, donor, open_request["id"], 10, unit="lbs")

        assert response.status_code == 400
        assert response.json()["code"] == "UNIT_MISMATCH"
        with Session(engine) as session:
            assert session.exec(select(Donation)).all() == []

    def test_missing_request(self, client, donor):
        response = _fulfill(client, donor, 999, 1)
        assert response.status_code == 404

    def test_invalid_body(self, client, donor, open_request):
        response = client.post(
            f"/requests/{open_request['id']}/fulfill",
            json={"foodType": "Rice", "quantity": 0, "unit": "kg", "pickupLocation": "x"},
            headers=donor["headers"],
        )
        assert response.status_code == 400

    def test_only_donors_fulfill(self, client, shelter, open_request):
        response = _fulfill(client, shelter, open_request["id"], 1)
        assert response.status_code == 403


class TestDeleteRequest:

    def test_owner_deletes_and_matches_cascade(self, client, engine, shelter, donor, open_request):
        _fulfill(client, donor, open_request["id"], 10)

        response = client.delete(f"/requests/{open_request['id']}", headers=shelter["headers"])

        assert response.status_code == 200
        with Session(engine) as session:
            assert session.exec(select(Match)).all() == []
        assert client.get(f"/requests/{open_request['id']}").status_code == 404

    def test_other_shelter_gets_not_found(self, client, register, open_request):
        other = register("shelter")

        response = client.delete(f"/requests/{open_request['id']}", headers=other["headers"])

        assert response.status_code == 404


class TestDonations:

    def test_standalone_donation_and_listing(self, client, donor, open_request):
        response = client.post(
            "/donations",
            json={"foodType": "Apples", "quantity": 12, "unit": "kg", "pickupLocation": "Orchard"},
            headers=donor["headers"],
        )
        assert response.status_code == 201
        _fulfill(client, donor, open_request["id"], 5)

        donations = client.get("/donor/donations", headers=donor["headers"]).json()["donations"]

        by_food = {d["food_type"]: d for d in donations}
        assert by_food["Apples"]["shelter_id"] is None
        assert by_food["Apples"]["quantity"] == "12 kg"
        assert by_food["Rice"]["shelter_name"] is not None

    def test_delete_own_pending_donation(self, client, donor):
        donation_id = client.post(
            "/donations",
            json={"foodType": "Apples", "quantity": 1, "unit": "kg", "pickupLocation": "Orchard"},
            headers=donor["headers"],
        ).json()["donationId"]

        response = client.delete(f"/donations/{donation_id}", headers=donor["headers"])

        assert response.status_code == 200
        assert client.get("/donor/donations", headers=donor["headers"]).json()["donations"] == []

    def test_delete_someone_elses_donation(self, client, register, donor):
        donation_id = client.post(
            "/donations",
            json={"foodType": "Apples", "quantity": 1, "unit": "kg", "pickupLocation": "Orchard"},
            headers=donor["headers"],
        ).json()["donationId"]
        stranger = register("donor")

        response = client.delete(f"/donations/{donation_id}", headers=stranger["headers"])

        assert response.status_code == 404

    def test_delete_delivered_donation(self, client, engine, donor):
        donation_id = client.post(
            "/donations",
            json={"foodType": "Apples", "quantity": 1, "unit": "kg", "pickupLocation": "Orchard"},
            headers=donor["headers"],
        ).json()["donationId"]
        with Session(engine) as session:
            donation = session.get(Donation, donation_id)
            donation.status = DonationStatus.DELIVERED.value
            session.add(donation)
            session.commit()

        response = client.delete(f"/donations/{donation_id}", headers=donor["headers"])

        assert response.status_code == 400


def test_public_board_names_the_shelter(client, shelter, open_request):
    [row] = client.get("/requests").json()["requests"]

    assert row["id"] == open_request["id"]
    assert row["shelter_id"] == open_request["shelter_id"]
    assert row["shelter_name"] == shelter["user"]["name"]
