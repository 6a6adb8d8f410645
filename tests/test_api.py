from datetime import timedelta

from sqlalchemy import select, update

from eventhub.core.config import settings
from eventhub.core.security import create_verify_token
from eventhub.core.time_utils import utcnow
from eventhub.models import DiscountCoupon, PointTransaction, Ticket, User
from eventhub.services.points import grant_referral_points

from factories import PASSWORD, add_points, auth_headers, create_coupon, create_event, create_user


# -------------------------
# Health / auth
# -------------------------
async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


async def test_register_and_login(client):
    r = await client.post(
        "/auth/register",
        json={"email": "Alice@Example.com", "password": PASSWORD, "name": "Alice"},
    )
    assert r.status_code == 201
    body = r.json()
    assert body["user"]["email"] == "alice@example.com"
    assert body["user"]["role"] == "CUSTOMER"
    assert body["user"]["isVerified"] is False
    assert len(body["user"]["referralCode"]) == 6
    assert body["token"]

    r = await client.post("/auth/login", json={"email": "alice@example.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == body["user"]["id"]


async def test_register_duplicate_email(client, customer):
    r = await client.post(
        "/auth/register",
        json={"email": customer.email, "password": PASSWORD, "name": "Again"},
    )
    assert r.status_code == 409
    assert r.json()["details"] == "User already exists"


async def test_login_wrong_password(client, customer):
    r = await client.post("/auth/login", json={"email": customer.email, "password": "nope-nope"})
    assert r.status_code == 400
    assert r.json()["details"] == "Invalid credentials"


async def test_token_endpoint_for_docs(client, customer):
    r = await client.post("/auth/token", data={"username": customer.email, "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"


async def test_register_with_referral_rewards_both(client, db, customer):
    referrer_id, referral_code = customer.id, customer.referral_code

    r = await client.post(
        "/auth/register",
        json={"email": "bob@example.com", "password": PASSWORD, "name": "Bob", "referralCode": referral_code.lower()},
    )
    assert r.status_code == 201
    referee_id = r.json()["user"]["id"]

    assert await db.scalar(select(User.points).where(User.id == referrer_id)) == settings.REFERRAL_POINTS
    discounts = (await db.execute(select(DiscountCoupon.discount).where(DiscountCoupon.user_id == referee_id))).scalars().all()
    assert discounts == [settings.REFERRAL_COUPON_DISCOUNT]

    r = await client.get("/user/profile", headers={"Authorization": f"Bearer {r.json()['token']}"})
    assert r.status_code == 200
    assert len(r.json()["discountCoupons"]) == 1


async def test_unknown_referral_code_is_ignored(client, db):
    r = await client.post(
        "/auth/register",
        json={"email": "carol@example.com", "password": PASSWORD, "name": "Carol", "referralCode": "NOPE99"},
    )
    assert r.status_code == 201
    assert await db.scalar(select(DiscountCoupon.id)) is None


async def test_verification_trigger_defers_referral(client, db, customer, monkeypatch):
    monkeypatch.setattr(settings, "REFERRAL_TRIGGER", "verification")
    referrer_id = customer.id

    r = await client.post(
        "/auth/register",
        json={"email": "dave@example.com", "password": PASSWORD, "name": "Dave", "referralCode": customer.referral_code},
    )
    assert r.status_code == 201
    referee_id = r.json()["user"]["id"]
    assert await db.scalar(select(User.points).where(User.id == referrer_id)) == 0

    token = create_verify_token(user_id=referee_id)
    r = await client.post(f"/auth/verify/{token}")
    assert r.status_code == 200
    assert r.json()["isVerified"] is True
    assert await db.scalar(select(User.points).where(User.id == referrer_id)) == settings.REFERRAL_POINTS

    # second click pays nothing
    r = await client.post(f"/auth/verify/{token}")
    assert r.json()["message"] == "Email already verified"
    assert await db.scalar(select(User.points).where(User.id == referrer_id)) == settings.REFERRAL_POINTS


async def test_verify_rejects_access_token(client, customer):
    r = await client.post(f"/auth/verify/{auth_headers(customer)['Authorization'].split()[1]}")
    assert r.status_code == 400


async def test_update_profile(client, customer):
    headers = auth_headers(customer)

    r = await client.put("/user/profile", json={}, headers=headers)
    assert r.status_code == 400

    r = await client.put("/user/profile", json={"newPassword": "another1", "currentPassword": "wrong"}, headers=headers)
    assert r.status_code == 401

    r = await client.put("/user/profile", json={"name": "Renamed"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["name"] == "Renamed"


# -------------------------
# Settlement
# -------------------------
async def test_create_transaction(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, price=50_000, quantity=10, promotion_percent=10)

    r = await client.post(
        "/transaction/create",
        json={"eventId": event.id, "ticketId": ticket.id, "quantity": 2},
        headers=auth_headers(customer),
    )

    assert r.status_code == 201
    body = r.json()
    assert body["message"] == "Transaction completed successfully"
    assert body["updatedTicketQuantity"] == 8
    assert body["transaction"]["amount"] == 100_000
    assert body["transaction"]["discountApplied"] == 10_000
    assert body["transaction"]["finalAmount"] == 90_000
    assert body["transaction"]["status"] == "COMPLETED"


async def test_create_transaction_with_coupon(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, price=1_000)
    coupon = await create_coupon(db, customer, discount=10)

    r = await client.post(
        "/transaction/create",
        json={"eventId": event.id, "ticketId": ticket.id, "quantity": 1, "couponCode": coupon.code},
        headers=auth_headers(customer),
    )

    assert r.status_code == 201
    assert r.json()["transaction"]["finalAmount"] == 990
    assert r.json()["transaction"]["usedReferralCode"] == coupon.code


async def test_create_transaction_requires_auth(client, db, organizer):
    event, ticket = await create_event(db, organizer)

    r = await client.post("/transaction/create", json={"eventId": event.id, "ticketId": ticket.id, "quantity": 1})
    assert r.status_code == 401
    assert r.json()["error"] == "Unauthorized"


async def test_create_transaction_missing_fields(client, customer):
    r = await client.post("/transaction/create", json={"eventId": 1}, headers=auth_headers(customer))

    assert r.status_code == 400
    assert r.json()["error"] == "Missing required fields: ticketId, quantity"


async def test_create_transaction_non_numeric(client, customer):
    r = await client.post(
        "/transaction/create",
        json={"eventId": "abc", "ticketId": 1, "quantity": 1},
        headers=auth_headers(customer),
    )

    assert r.status_code == 400
    assert r.json()["error"] == "Invalid numeric fields"


async def test_create_transaction_unknown_ticket(client, db, organizer, customer):
    event, _ = await create_event(db, organizer)

    r = await client.post(
        "/transaction/create",
        json={"eventId": event.id, "ticketId": 987654, "quantity": 1},
        headers=auth_headers(customer),
    )

    assert r.status_code == 404
    assert r.json() == {"error": "Not found", "details": "Ticket not found"}


async def test_create_transaction_insufficient_inventory(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, quantity=1)
    ticket_id = ticket.id

    r = await client.post(
        "/transaction/create",
        json={"eventId": event.id, "ticketId": ticket_id, "quantity": 3},
        headers=auth_headers(customer),
    )

    assert r.status_code == 409
    assert r.json()["error"] == "Not enough tickets available"
    assert await db.scalar(select(Ticket.quantity).where(Ticket.id == ticket_id)) == 1


async def test_quote_endpoint(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, price=50_000, promotion_percent=10)

    r = await client.post(
        "/transaction/quote",
        json={"eventId": event.id, "ticketId": ticket.id, "quantity": 2},
        headers=auth_headers(customer),
    )

    assert r.status_code == 200
    assert r.json()["finalAmount"] == 90_000
    assert r.json()["promotionId"] is not None


# -------------------------
# Points
# -------------------------
async def test_redeem_points(client, db, customer):
    await add_points(db, customer, 5_000)

    r = await client.post("/point/redeem", json={"ticketPrice": 8_000}, headers=auth_headers(customer))

    assert r.status_code == 200
    body = r.json()
    assert body["originalPrice"] == 8_000
    assert body["pointsRedeemed"] == 5_000
    assert body["finalPrice"] == 3_000
    assert "Final ticket price: 3000" in body["message"]


async def test_redeem_points_invalid_price(client, customer):
    r = await client.post("/point/redeem", json={"ticketPrice": 0}, headers=auth_headers(customer))
    assert r.status_code == 400

    r = await client.post("/point/redeem", json={"ticketPrice": "lots"}, headers=auth_headers(customer))
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid numeric fields"


async def test_redeem_points_requires_auth(client):
    r = await client.post("/point/redeem", json={"ticketPrice": 100})
    assert r.status_code == 401


async def test_point_balance(client, db, customer):
    await add_points(db, customer, 2_500)
    await add_points(db, customer, 7_000, expires_in=timedelta(days=-1))

    r = await client.get("/point/balance", headers=auth_headers(customer))

    assert r.status_code == 200
    assert r.json()["points"] == 2_500
    assert [g["points"] for g in r.json()["expiring"]] == [2_500]


# -------------------------
# Events / dashboard
# -------------------------
async def test_create_and_list_events(client, organizer, customer):
    now = utcnow()
    payload = {
        "name": "Jazz Night",
        "date": (now + timedelta(days=10)).isoformat(),
        "location": "Yogyakarta",
        "category": "Music",
        "capacity": 200,
        "tickets": [{"type": "VIP", "price": 150_000, "quantity": 20}, {"type": "REGULAR", "price": 75_000, "quantity": 100}],
        "promotion": {
            "discountPercent": 15,
            "startDate": (now - timedelta(days=1)).isoformat(),
            "endDate": (now + timedelta(days=5)).isoformat(),
        },
    }

    r = await client.post("/create-event", json=payload, headers=auth_headers(customer))
    assert r.status_code == 403

    r = await client.post("/create-event", json=payload, headers=auth_headers(organizer))
    assert r.status_code == 201
    event_id = r.json()["event"]["id"]

    r = await client.get("/get-events")
    assert r.status_code == 200
    listed = [e for e in r.json() if e["id"] == event_id][0]
    assert listed["price"] == "75000"
    assert listed["promotion"]["discountPercent"] == 15

    r = await client.get(f"/events/{event_id}")
    assert r.status_code == 200
    assert len(r.json()["tickets"]) == 2
    assert r.json()["activePromotion"]["discountPercent"] == 15

    r = await client.get("/events/999999")
    assert r.status_code == 404


async def test_paid_event_needs_tickets(client, organizer):
    r = await client.post(
        "/create-event",
        json={
            "name": "Empty",
            "date": (utcnow() + timedelta(days=3)).isoformat(),
            "location": "Bali",
            "category": "Art",
            "capacity": 10,
        },
        headers=auth_headers(organizer),
    )
    assert r.status_code == 400


async def test_dashboard(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, price=20_000, quantity=10)
    other = await create_user(db)

    for buyer, qty in ((customer, 2), (customer, 1), (other, 1)):
        r = await client.post(
            "/transaction/create",
            json={"eventId": event.id, "ticketId": ticket.id, "quantity": qty},
            headers=auth_headers(buyer),
        )
        assert r.status_code == 201

    headers = auth_headers(organizer)

    r = await client.get("/dashboard/events", headers=headers)
    assert r.status_code == 200
    row = r.json()[0]
    assert row["attendeeCount"] == 2
    assert row["transactionCount"] == 3
    assert row["revenue"] == 80_000

    r = await client.get("/dashboard/attendees", headers=headers)
    assert {a["attendeeId"] for a in r.json()} == {customer.id, other.id}

    r = await client.get("/dashboard/transactions", headers=headers)
    assert len(r.json()) == 3
    assert r.json()[0]["tickets"][0]["type"] == "REGULAR"

    r = await client.get("/dashboard/statistics", params={"range": "1y"}, headers=headers)
    assert r.status_code == 200
    assert [(p["attendees"], p["revenue"]) for p in r.json()] == [(2, 80_000)]

    r = await client.get("/dashboard/events", headers=auth_headers(customer))
    assert r.status_code == 403
    assert r.json() == {"error": "Forbidden", "details": "Organizer only"}


async def test_openapi_documents_error_body(client):
    r = await client.get("/openapi.json")
    assert r.status_code == 200
    create = r.json()["paths"]["/transaction/create"]["post"]
    assert set(create["responses"]) >= {"201", "400", "404", "409"}
    assert "ErrorOut" in r.json()["components"]["schemas"]


async def test_bulk_purchase_beyond_a_thousand_units(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, price=10, quantity=5_000)

    r = await client.post(
        "/transaction/create",
        json={"eventId": event.id, "ticketId": ticket.id, "quantity": 1_500},
        headers=auth_headers(customer),
    )

    assert r.status_code == 201
    assert r.json()["updatedTicketQuantity"] == 3_500
    assert r.json()["transaction"]["amount"] == 15_000


async def test_large_quantity_over_stock_is_a_conflict(client, db, organizer, customer):
    event, ticket = await create_event(db, organizer, quantity=10)
    ticket_id = ticket.id

    r = await client.post(
        "/transaction/create",
        json={"eventId": event.id, "ticketId": ticket_id, "quantity": 1_001},
        headers=auth_headers(customer),
    )

    assert r.status_code == 409
    assert r.json()["error"] == "Not enough tickets available"
    assert await db.scalar(select(Ticket.quantity).where(Ticket.id == ticket_id)) == 10


async def test_redeem_points_rejects_numeric_string(client, db, customer):
    await add_points(db, customer, 5_000)

    r = await client.post("/point/redeem", json={"ticketPrice": "8000"}, headers=auth_headers(customer))

    assert r.status_code == 400
    assert r.json()["error"] == "Invalid numeric fields"


async def test_profile_points_exclude_expired_grants(client, db, customer):
    customer_id = customer.id
    await grant_referral_points(db, customer_id)
    await db.execute(
        update(PointTransaction)
        .where(PointTransaction.user_id == customer_id)
        .values(expires_at=utcnow() - timedelta(days=1))
    )
    await db.commit()

    r = await client.get("/user/profile", headers=auth_headers(customer))

    assert r.status_code == 200
    assert r.json()["points"] == 0

    r = await client.get("/point/balance", headers=auth_headers(customer))
    assert r.json()["points"] == 0
