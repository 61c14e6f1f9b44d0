"""
tests/integration/test_members.py — Member CRUD, archiving and the
per-member balance view.

Endpoints covered:
  POST   /groups/:id/members   → 201 / 404
  GET    /groups/:id/members   → 200 (active only, sorted by name)
  GET    /members/:id          → 200 / 404
  PATCH  /members/:id          → 200
  DELETE /members/:id          → 200 (archive)
  GET    /members/:id/balance  → 200 (summary + paged expenses)
"""

from __future__ import annotations

from conftest import data_of, make_expense, make_group, make_member, set_paid, setup_trio


class TestMemberCrud:

    def test_add_member_returns_201(self, client):
        group = make_group(client)

        resp = client.post(f"/api/v1/groups/{group['id']}/members", json={"name": " Alice "})

        assert resp.status_code == 201
        data = data_of(resp)
        assert data["name"] == "Alice"
        assert data["group_id"] == group["id"]

    def test_add_member_to_unknown_group_returns_404(self, client):
        resp = client.post("/api/v1/groups/999999/members", json={"name": "Alice"})

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"

    def test_list_members_sorted_by_name(self, client):
        group = make_group(client)
        make_member(client, group["id"], "Zoe")
        make_member(client, group["id"], "Adam")

        resp = client.get(f"/api/v1/groups/{group['id']}/members")

        assert [m["name"] for m in data_of(resp)] == ["Adam", "Zoe"]

    def test_rename_member(self, client):
        group = make_group(client)
        alice = make_member(client, group["id"], "Alice")

        resp = client.patch(f"/api/v1/members/{alice['id']}", json={"name": "Alicia"})

        assert resp.status_code == 200
        assert data_of(resp)["name"] == "Alicia"

    def test_get_unknown_member_returns_404(self, client):
        resp = client.get("/api/v1/members/999999")

        assert resp.status_code == 404
        assert resp.get_json()["error"]["code"] == "MEMBER_NOT_FOUND"


class TestArchiveMember:

    def test_archived_member_disappears_from_listing(self, client):
        group, alice, bob, _ = setup_trio(client)

        resp = client.delete(f"/api/v1/members/{bob['id']}")

        assert resp.status_code == 200
        assert data_of(resp) == {"archived": True, "member_id": bob["id"]}
        names = [m["name"] for m in data_of(client.get(f"/api/v1/groups/{group['id']}/members"))]
        assert names == ["Alice", "Carol"]
        assert client.get(f"/api/v1/members/{bob['id']}").status_code == 404

    def test_archived_member_expenses_are_kept(self, client):
        group, alice, bob, _ = setup_trio(client)
        expense = data_of(make_expense(client, group["id"], alice["id"], "40.00", [alice["id"], bob["id"]]))

        client.delete(f"/api/v1/members/{bob['id']}")

        resp = client.get(f"/api/v1/expenses/{expense['id']}")
        assert resp.status_code == 200
        assert [s["name"] for s in data_of(resp)["split_with"]] == ["Alice", "Bob"]

    def test_archived_member_cannot_join_new_expenses(self, client):
        group, alice, bob, _ = setup_trio(client)
        client.delete(f"/api/v1/members/{bob['id']}")

        resp = make_expense(client, group["id"], alice["id"], "10.00", [alice["id"], bob["id"]])

        assert resp.status_code == 422
        assert resp.get_json()["error"]["code"] == "SPLIT_MEMBER_NOT_IN_GROUP"


class TestMemberBalance:

    def test_summary_totals_and_counterparties(self, client):
        group, alice, bob, carol = setup_trio(client)
        trio = [alice["id"], bob["id"], carol["id"]]
        make_expense(client, group["id"], alice["id"], "90.00", trio, date="2026-01-01T10:00:00")
        make_expense(client, group["id"], bob["id"], "30.00", [bob["id"], carol["id"]], date="2026-01-02T10:00:00")

        resp = client.get(f"/api/v1/members/{carol['id']}/balance")

        assert resp.status_code == 200
        data = data_of(resp)
        summary = data["summary"]
        assert data["member"]["id"] == carol["id"]
        assert summary["total_paid"] == "0.00"
        assert summary["total_share"] == "45.00"
        assert summary["total_owes"] == "45.00"
        assert summary["net_balance"] == "-45.00"
        assert summary["is_settled"] is False
        assert [(c["name"], c["amount"]) for c in summary["owes_to"]] == [
            ("Alice", "30.00"),
            ("Bob", "15.00"),
        ]
        assert summary["owed_by"] == []
        assert data["total"] == 2
        assert data["has_more"] is False
        assert [e["description"] for e in data["expenses"]] == ["Test Expense", "Test Expense"]
        assert data["expenses"][0]["amount"] == "30.00"

    def test_paid_share_leaves_owes_to(self, client):
        group, alice, bob, _ = setup_trio(client)
        expense = data_of(make_expense(client, group["id"], alice["id"], "50.00", [alice["id"], bob["id"]]))
        set_paid(client, expense["id"], bob["id"])

        summary = data_of(client.get(f"/api/v1/members/{bob['id']}/balance"))["summary"]

        assert summary["owes_to"] == []
        assert summary["is_settled"] is True
        assert summary["total_share"] == "25.00"

    def test_expense_page_limit_and_offset(self, client):
        group, alice, bob, _ = setup_trio(client)
        for day in (1, 2, 3):
            make_expense(
                client, group["id"], alice["id"], f"{day}0.00", [alice["id"], bob["id"]],
                date=f"2026-03-0{day}T09:00:00",
            )

        first = data_of(client.get(f"/api/v1/members/{bob['id']}/balance?limit=2"))
        second = data_of(client.get(f"/api/v1/members/{bob['id']}/balance?limit=2&offset=2"))

        assert [e["amount"] for e in first["expenses"]] == ["30.00", "20.00"]
        assert first["has_more"] is True
        assert [e["amount"] for e in second["expenses"]] == ["10.00"]
        assert second["has_more"] is False
        assert second["total"] == 3

    def test_invalid_limit_returns_400(self, client):
        group = make_group(client)
        alice = make_member(client, group["id"], "Alice")

        resp = client.get(f"/api/v1/members/{alice['id']}/balance?limit=0")

        assert resp.status_code == 400
