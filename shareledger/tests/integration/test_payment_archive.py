"""
tests/integration/test_payment_archive.py — The archive of paid shares.

Endpoints covered:
  GET /groups/:id/payments    → 200 / 400 / 404
"""

from __future__ import annotations

from conftest import data_of, make_expense, set_paid, setup_trio


def _archive(client, group_id: int, query: str = ""):
    return client.get(f"/api/v1/groups/{group_id}/payments{query}")


def _paid_trio(client):
    """Alice pays dinner for three, Bob pays a taxi for two; three shares settled."""
    group, alice, bob, carol = setup_trio(client)
    trio = [alice["id"], bob["id"], carol["id"]]
    dinner = data_of(make_expense(
        client, group["id"], alice["id"], "90.00", trio, "Dinner", date="2026-01-01T19:00:00",
    ))
    taxi = data_of(make_expense(
        client, group["id"], bob["id"], "40.00", [alice["id"], bob["id"]], "Taxi",
        date="2026-01-02T23:00:00",
    ))
    set_paid(client, dinner["id"], bob["id"])
    set_paid(client, dinner["id"], carol["id"])
    set_paid(client, taxi["id"], alice["id"])
    return group, alice, bob, carol, dinner, taxi


class TestPaymentArchive:

    def test_empty_group_has_no_payments(self, client):
        group, alice, bob, _ = setup_trio(client)
        make_expense(client, group["id"], alice["id"], "20.00", [alice["id"], bob["id"]])

        resp = _archive(client, group["id"])

        assert resp.status_code == 200
        data = data_of(resp)
        assert data["payments"] == []
        assert data["statistics"]["total_transactions"] == 0
        assert data["statistics"]["total_amount"] == "0.00"
        assert [m["count"] for m in data["statistics"]["by_member"]] == [0, 0, 0]

    def test_lists_paid_shares_with_names(self, client):
        group, alice, bob, carol, dinner, _ = _paid_trio(client)

        data = data_of(_archive(client, group["id"]))

        assert len(data["payments"]) == 3
        entry = next(
            p for p in data["payments"]
            if p["expense_id"] == dinner["id"] and p["member_id"] == carol["id"]
        )
        assert entry["payer_id"] == alice["id"]
        assert entry["payer_name"] == "Alice"
        assert entry["member_name"] == "Carol"
        assert entry["share"] == "30.00"
        assert entry["expense_amount"] == "90.00"
        assert entry["split_count"] == 3
        assert entry["paid_at"] is not None
        assert data["statistics"]["total_amount"] == "80.00"
        by_member = {m["name"]: (m["count"], m["amount"]) for m in data["statistics"]["by_member"]}
        assert by_member == {"Alice": (1, "20.00"), "Bob": (1, "30.00"), "Carol": (1, "30.00")}

    def test_payer_share_is_never_listed(self, client):
        group, alice, _, _, _, taxi = _paid_trio(client)

        data = data_of(_archive(client, group["id"], f"?member_id={alice['id']}"))

        assert [(p["expense_id"], p["member_id"]) for p in data["payments"]] == [
            (taxi["id"], alice["id"]),
        ]

    def test_filter_by_payer(self, client):
        group, _, bob, _, _, taxi = _paid_trio(client)

        data = data_of(_archive(client, group["id"], f"?payer_id={bob['id']}"))

        assert [(p["expense_id"], p["member_name"]) for p in data["payments"]] == [
            (taxi["id"], "Alice"),
        ]

    def test_search_matches_description(self, client):
        group, *_ = _paid_trio(client)

        data = data_of(_archive(client, group["id"], "?q=dinner"))

        assert {p["description"] for p in data["payments"]} == {"Dinner"}
        assert len(data["payments"]) == 2

    def test_sort_by_amount(self, client):
        group, *_ = _paid_trio(client)

        data = data_of(_archive(client, group["id"], "?sort=amount-asc"))

        assert [p["share"] for p in data["payments"]] == ["20.00", "30.00", "30.00"]

    def test_date_range_outside_payments_is_empty(self, client):
        group, *_ = _paid_trio(client)

        inside = data_of(_archive(client, group["id"], "?from=2000-01-01&to=2999-12-31"))
        outside = data_of(_archive(client, group["id"], "?from=2000-01-01&to=2000-12-31"))

        assert len(inside["payments"]) == 3
        assert outside["payments"] == []

    def test_reversed_payment_leaves_archive(self, client):
        group, _, bob, _, dinner, _ = _paid_trio(client)

        set_paid(client, dinner["id"], bob["id"], paid=False)
        data = data_of(_archive(client, group["id"]))

        assert (dinner["id"], bob["id"]) not in {
            (p["expense_id"], p["member_id"]) for p in data["payments"]
        }
        assert data["statistics"]["total_transactions"] == 2

    def test_invalid_sort_returns_400(self, client):
        group, *_ = setup_trio(client)

        resp = _archive(client, group["id"], "?sort=name")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "sort"

    def test_inverted_date_range_returns_400(self, client):
        group, *_ = setup_trio(client)

        resp = _archive(client, group["id"], "?from=2026-02-01&to=2026-01-01")

        assert resp.status_code == 400
        assert resp.get_json()["error"]["field"] == "from"

    def test_unknown_group_returns_404(self, client):
        resp = _archive(client, 999999)

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"
