# tests/test_billing.py

"""
Stripe checkout guards and refunds. Stripe itself is always mocked.
"""

from unittest.mock import patch, MagicMock

from fastapi.testclient import TestClient

from supabase_mocks import make_supabase

PRICE_ID = "price_1QabcdEFGHijklMNOPqr"
ACTIVE_ROW = {"user_id": "syndic-1", "stripe_customer_id": "cus_1", "subscription_id": "sub_own", "plan_active": True}


def checkout(client, price_id=PRICE_ID):
    return client.post("/billing/checkout", json={"priceId": price_id})


def test_checkout_placeholder_price(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    response = checkout(client, "price_xxx")

    assert response.status_code == 400
    assert response.json()["code"] == "price_not_configured"


def test_checkout_unknown_price(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.billing.get_stripe_client"), \
            patch("routers.billing.get_price", return_value=None):
        response = checkout(client)

    assert response.status_code == 400
    assert response.json()["code"] == "invalid_price_id"


def test_checkout_already_subscribed(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.billing.get_stripe_client") as stripe_client, \
            patch("routers.billing.get_price", return_value={"id": PRICE_ID, "unit_amount": 9900}), \
            patch("routers.billing.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"stripe_customers": [ACTIVE_ROW]})
        response = checkout(client)

    assert response.status_code == 400
    assert response.json()["code"] == "already_subscribed"
    stripe_client.return_value.checkout.Session.create.assert_not_called()


def test_checkout_creates_subscription_session(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    stripe_client = MagicMock()
    stripe_client.checkout.Session.create.return_value = {"url": "https://checkout.test/s", "id": "cs_1"}
    with patch("routers.billing.get_stripe_client", return_value=stripe_client), \
            patch("routers.billing.get_price", return_value={"id": PRICE_ID, "unit_amount": 9900}), \
            patch("routers.billing.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"stripe_customers": []})
        response = client.post("/billing/checkout", json={"priceId": PRICE_ID},
                               headers={"origin": "https://app.sakan.ma"})

    assert response.status_code == 200
    params = stripe_client.checkout.Session.create.call_args.kwargs
    assert params["mode"] == "subscription"
    assert params["success_url"] == "https://app.sakan.ma/app"
    assert params["cancel_url"] == "https://app.sakan.ma/cancel"
    assert params["metadata"] == {"user_id": "syndic-1"}
    assert params["customer_email"] == "syndic@example.com"


def test_refund_refuses_foreign_subscription(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    with patch("routers.billing.get_stripe_client") as stripe_client, \
            patch("routers.billing.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"stripe_customers": [ACTIVE_ROW]})
        response = client.post("/billing/refund", json={"subscriptionId": "sub_someone_else"})

    assert response.status_code == 403
    stripe_client.assert_not_called()


def test_refund_latest_invoice_in_cents(client: TestClient, login_as, syndic_user):
    login_as(syndic_user)
    stripe_client = MagicMock()
    stripe_client.Invoice.list.return_value = {"data": [{"id": "in_1", "charge": "ch_1"}]}
    stripe_client.Refund.create.return_value = {"id": "re_1", "amount": 2550, "status": "succeeded"}
    with patch("routers.billing.get_stripe_client", return_value=stripe_client), \
            patch("routers.billing.get_supabase_client") as mock_supabase:
        mock_supabase.return_value = make_supabase({"stripe_customers": [ACTIVE_ROW]})
        response = client.post("/billing/refund", json={"amount": 25.5, "subscriptionId": "sub_own"})

    assert response.status_code == 200
    stripe_client.Invoice.list.assert_called_with(subscription="sub_own", status="paid", limit=1)
    refund_params = stripe_client.Refund.create.call_args.kwargs
    assert refund_params["charge"] == "ch_1"
    assert refund_params["amount"] == 2550
    assert response.json()["data"]["amount"] == 25.5
