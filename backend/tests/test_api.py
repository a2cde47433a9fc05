"""Integration tests for the FastAPI endpoints."""
from datetime import date, timedelta


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


def _setup(client):
    """Two owners sharing one estate 60/40, one client and one supplier."""
    ana = client.post("/api/owners/", json={"name": "Ana García"}).json()
    luis = client.post("/api/owners/", json={"name": "Luis Pérez"}).json()
    estate = client.post("/api/owners/estates", json={"name": "Calle Mayor 1"}).json()
    client.post(f"/api/owners/estates/{estate['id']}/owners", json={"owner_id": ana["id"], "ownership_percentage": 60})
    client.post(f"/api/owners/estates/{estate['id']}/owners", json={"owner_id": luis["id"], "ownership_percentage": 40})
    tenant = client.post("/api/counterparties/clients", json={"name": "Inquilino SL"}).json()
    supplier = client.post(
        "/api/counterparties/suppliers", json={"name": "Reformas SA", "payment_terms": 15}
    ).json()
    return {"ana": ana, "luis": luis, "estate": estate, "tenant": tenant, "supplier": supplier}


def _issue(client, ctx, **overrides):
    data = {
        "counterparty_id": ctx["tenant"]["id"],
        "property_id": ctx["estate"]["id"],
        "owner_id": ctx["ana"]["id"],
        "record_date": "2025-07-01",
        "base_amount": 1000,
        "vat_rate": 21,
        "withholding_rate": 19,
    }
    data.update(overrides)
    return client.post("/api/records/issued", json=data)


class TestOwners:
    def test_create_and_list(self, client):
        _setup(client)
        r = client.get("/api/owners/")
        assert r.status_code == 200
        assert [o["name"] for o in r.json()] == ["Ana García", "Luis Pérez"]

    def test_estate_links(self, client):
        ctx = _setup(client)
        r = client.get(f"/api/owners/estates/{ctx['estate']['id']}/owners")
        assert sorted(link["ownership_percentage"] for link in r.json()) == [40, 60]

    def test_duplicate_link_rejected(self, client):
        ctx = _setup(client)
        r = client.post(
            f"/api/owners/estates/{ctx['estate']['id']}/owners",
            json={"owner_id": ctx["ana"]["id"], "ownership_percentage": 10},
        )
        assert r.status_code == 409

    def test_invalid_percentage(self, client):
        ctx = _setup(client)
        r = client.post(
            f"/api/owners/estates/{ctx['estate']['id']}/owners",
            json={"owner_id": ctx["ana"]["id"], "ownership_percentage": 120},
        )
        assert r.status_code == 422

    def test_owner_not_found(self, client):
        assert client.get("/api/owners/9999").status_code == 404


class TestCounterparties:
    def test_supplier_default_terms(self, client):
        r = client.post("/api/counterparties/suppliers", json={"name": "Limpiezas"})
        assert r.status_code == 201
        assert r.json()["payment_terms"] == 30

    def test_list_clients(self, client):
        _setup(client)
        assert [c["name"] for c in client.get("/api/counterparties/clients").json()] == ["Inquilino SL"]


class TestRecords:
    def test_create_issued(self, client):
        ctx = _setup(client)
        r = _issue(client, ctx)
        assert r.status_code == 201
        data = r.json()
        assert data["record_number"] == "FACT-0001"
        assert data["total_amount"] == 1020.0
        assert data["ownership_share"] == 60.0
        assert data["counterparty_name"] == "Inquilino SL"
        assert data["due_date"] == "2025-07-31"

    def test_second_invoice_same_month_conflict(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        r = _issue(client, ctx, record_date="2025-07-20")
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "RECORD_DUPLICATE_PERIOD"

    def test_proportional(self, client):
        ctx = _setup(client)
        r = _issue(
            client, ctx,
            withholding_rate=0,
            is_proportional=True,
            period_start="2025-07-17",
            period_end="2025-07-31",
        )
        assert r.status_code == 201
        assert r.json()["base_amount"] == 483.87
        assert r.json()["total_amount"] == 585.48

        details = client.get(f"/api/records/issued/{r.json()['id']}/calculation").json()
        assert details["days_billed"] == 15

    def test_proportional_range_invalid(self, client):
        ctx = _setup(client)
        r = _issue(client, ctx, is_proportional=True, period_start="2025-07-31", period_end="2025-07-01")
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "PROPORTIONAL_RANGE_INVALID"

    def test_negative_base_rejected(self, client):
        ctx = _setup(client)
        assert _issue(client, ctx, base_amount=-5).status_code == 422

    def test_unknown_counterparty(self, client):
        ctx = _setup(client)
        assert _issue(client, ctx, counterparty_id=9999).status_code == 404

    def test_rates(self, client):
        data = client.get("/api/records/rates", params={"year": 2025}).json()
        assert data["vat_rates"] == [0, 4, 10, 21]
        assert data["default_withholding_rate"] == 19

    def test_invalid_kind(self, client):
        assert client.get("/api/records/bogus").status_code == 422

    def test_received_uses_supplier_terms(self, client):
        ctx = _setup(client)
        r = client.post(
            "/api/records/received",
            json={
                "counterparty_id": ctx["supplier"]["id"],
                "external_number": "RS-77",
                "record_date": "2025-08-01",
                "base_amount": 200,
                "vat_rate": 21,
            },
        )
        assert r.status_code == 201
        assert r.json()["record_number"] == "FR-0001"
        assert r.json()["due_date"] == "2025-08-16"

    def test_credit_note(self, client):
        ctx = _setup(client)
        original = _issue(client, ctx).json()
        r = client.post(f"/api/records/issued/{original['id']}/credit-note")
        assert r.status_code == 201
        note = r.json()
        assert note["record_number"] == "ABONO-0001"
        assert note["total_amount"] == -original["total_amount"]
        assert note["original_record_id"] == original["id"]

        chained = client.post(f"/api/records/issued/{note['id']}/credit-note")
        assert chained.status_code == 409
        assert chained.json()["detail"]["code"] == "CREDIT_NOTE_OF_CREDIT_NOTE"

    def test_credit_note_wrong_kind_is_404(self, client):
        ctx = _setup(client)
        original = _issue(client, ctx).json()
        assert client.post(f"/api/records/received/{original['id']}/credit-note").status_code == 404

    def test_update_recomputes(self, client):
        ctx = _setup(client)
        created = _issue(client, ctx).json()
        r = client.put(f"/api/records/issued/{created['id']}", json={"base_amount": 500})
        assert r.status_code == 200
        assert r.json()["total_amount"] == 510.0

    def test_update_number_collision(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        second = _issue(client, ctx, record_date="2025-08-01").json()
        r = client.put(f"/api/records/issued/{second['id']}", json={"record_number": "FACT-0001"})
        assert r.status_code == 409
        assert r.json()["detail"]["code"] == "RECORD_NUMBER_DUPLICATE"

    def test_create_after_manual_rename(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        second = _issue(client, ctx, record_date="2025-08-01").json()
        renamed = client.put(f"/api/records/issued/{second['id']}", json={"record_number": "MANUAL"})
        assert renamed.status_code == 200

        third = _issue(client, ctx, record_date="2025-09-01")
        assert third.status_code == 201
        assert third.json()["record_number"] == "FACT-0002"

    def test_update_rejects_null_amount(self, client):
        ctx = _setup(client)
        created = _issue(client, ctx).json()
        r = client.put(f"/api/records/issued/{created['id']}", json={"base_amount": None})
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "MISSING_FIELD"
        assert r.json()["detail"]["field"] == "base_amount"

        stored = client.get(f"/api/records/issued/{created['id']}").json()
        assert stored["total_amount"] == created["total_amount"]

    def test_update_rejects_null_date(self, client):
        ctx = _setup(client)
        created = _issue(client, ctx).json()
        r = client.put(f"/api/records/issued/{created['id']}", json={"record_date": None})
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "MISSING_FIELD"

    def test_status_flow(self, client):
        ctx = _setup(client)
        created = _issue(client, ctx).json()
        r = client.patch(
            f"/api/records/issued/{created['id']}/status",
            json={"status": "collected", "settled_on": "2025-07-15", "reference": "TRF-1"},
        )
        assert r.status_code == 200
        assert r.json()["status"] == "collected"
        assert r.json()["settled_on"] == "2025-07-15"

        locked = client.put(f"/api/records/issued/{created['id']}", json={"base_amount": 1})
        assert locked.status_code == 409

        invalid = client.patch(f"/api/records/issued/{created['id']}/status", json={"status": "paid"})
        assert invalid.status_code == 422

    def test_list_and_filter(self, client):
        ctx = _setup(client)
        first = _issue(client, ctx).json()
        _issue(client, ctx, record_date="2025-08-01")
        client.patch(f"/api/records/issued/{first['id']}/status", json={"status": "collected"})

        assert len(client.get("/api/records/issued", params={"year": 2025}).json()) == 2
        collected = client.get("/api/records/issued", params={"status": "collected"}).json()
        assert [r["id"] for r in collected] == [first["id"]]

    def test_calculate_preview(self, client):
        r = client.post(
            "/api/records/calculate",
            json={"base_amount": 1000, "vat_rate": 21, "withholding_rate": 15},
        )
        assert r.status_code == 200
        assert r.json()["total_amount"] == 1060.0
        assert r.json()["calculation_type"] == "normal"


class TestVatBook:
    def _populate(self, client):
        ctx = _setup(client)
        _issue(client, ctx)  # July, Ana 60 %
        _issue(client, ctx, record_date="2025-08-03", owner_id=ctx["luis"]["id"])
        client.post(
            "/api/records/received",
            json={
                "counterparty_id": ctx["supplier"]["id"],
                "property_id": ctx["estate"]["id"],
                "owner_id": ctx["ana"]["id"],
                "record_date": "2025-08-10",
                "base_amount": 500,
                "vat_rate": 21,
            },
        )
        client.post(
            "/api/records/internal",
            json={"record_date": "2025-02-10", "base_amount": 100, "vat_rate": 21},
        )
        return ctx

    def test_charged_book_quarter(self, client):
        self._populate(client)
        r = client.get("/api/vat-book/charged", params={"year": 2025, "quarter": 3})
        assert r.status_code == 200
        data = r.json()
        assert data["book"] == "E"
        assert [e["index"] for e in data["entries"]] == [1, 2]
        assert data["totals"]["vat"] == 420.0

    def test_supported_book_month(self, client):
        self._populate(client)
        data = client.get("/api/vat-book/supported", params={"year": 2025, "month": 2}).json()
        assert data["totals"]["count"] == 1
        assert data["entries"][0]["record_type"] == "internal"

    def test_invalid_period(self, client):
        assert client.get("/api/vat-book/charged", params={"year": 2010}).status_code == 422
        r = client.get("/api/vat-book/charged", params={"year": 2025, "quarter": 6})
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "INVALID_QUARTER"

    def test_liquidation(self, client):
        self._populate(client)
        data = client.get("/api/vat-book/liquidation", params={"year": 2025, "quarter": 3}).json()
        assert data["charged_vat"] == 420.0
        assert data["supported_vat"] == 105.0
        assert data["net_vat"] == 315.0
        assert data["result"] == "TO_PAY"

    def test_by_owner(self, client):
        self._populate(client)
        data = client.get("/api/vat-book/by-owner", params={"year": 2025}).json()
        names = [o["owner_name"] for o in data["owners"]]
        assert names == ["Ana García", "Luis Pérez"]
        ana, luis = data["owners"]
        # each owner carries their own share of the invoice they are linked to
        assert ana["vat_charged"] == 126.0
        assert luis["vat_charged"] == 84.0
        # company-wide expense split across both owners
        assert ana["internal_expenses"]["base"] == 50.0
        assert luis["internal_expenses"]["base"] == 50.0

    def test_stats(self, client):
        self._populate(client)
        data = client.get("/api/vat-book/stats/2025").json()
        assert [q["quarter"] for q in data["quarters"]] == [1, 2, 3, 4]
        assert data["quarters"][0]["growth_rate"] is None
        assert data["quarters"][2]["growth_rate"] is None  # Q2 had no charged VAT

    def test_stats_invalid_year(self, client):
        assert client.get("/api/vat-book/stats/1999").status_code == 422


class TestReports:
    def test_aging_and_overdue(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        aging = client.get("/api/reports/issued/aging").json()
        assert len(aging["items"]) == 1
        assert aging["items"][0]["aging_bucket"] == "OVER_90_DAYS"
        assert aging["total_pending"] == 1020.0

        overdue = client.get("/api/reports/issued/overdue").json()
        assert [i["record_number"] for i in overdue] == ["FACT-0001"]

    def test_due_soon(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        due = (date.today() + timedelta(days=3)).isoformat()
        upcoming = _issue(client, ctx, record_date="2025-09-01", due_date=due).json()

        items = client.get("/api/reports/issued/due-soon", params={"days": 5}).json()
        assert [i["record_id"] for i in items] == [upcoming["id"]]
        assert items[0]["days_until_due"] == 3
        assert client.get("/api/reports/issued/due-soon", params={"days": 2}).json() == []

    def test_grouped_stats(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        _issue(client, ctx, record_date="2025-08-01", owner_id=ctx["luis"]["id"])

        by_client = client.get("/api/reports/issued/by-counterparty").json()
        assert by_client[0]["counterparty_name"] == "Inquilino SL"
        assert by_client[0]["invoice_count"] == 2

        by_owner = client.get("/api/reports/issued/by-owner", params={"year": 2025}).json()
        assert sorted(o["owner_name"] for o in by_owner) == ["Ana García", "Luis Pérez"]

        stats = client.get("/api/reports/issued/stats").json()
        assert stats["total_records"] == 2
        assert stats["overdue_records"] == 2

    def test_monthly_summary_and_credit_notes(self, client):
        ctx = _setup(client)
        original = _issue(client, ctx).json()
        client.post(f"/api/records/issued/{original['id']}/credit-note")

        monthly = client.get("/api/reports/issued/monthly/2025").json()
        # the credit note is dated on the day it is issued, outside 2025
        assert [m["month_name"] for m in monthly["months"]] == ["julio"]
        assert monthly["months"][0]["total_invoiced"] == 1020.0
        assert monthly["months"][0]["total_refunded"] == 0.0

        notes = client.get("/api/reports/issued/credit-notes").json()
        assert notes[0]["original_record_number"] == "FACT-0001"

    def test_monthly_summary_invalid_year(self, client):
        r = client.get("/api/reports/issued/monthly/1999")
        assert r.status_code == 422
        assert r.json()["detail"]["code"] == "INVALID_YEAR"

    def test_income_statement(self, client):
        ctx = _setup(client)
        _issue(client, ctx)
        client.post(
            "/api/records/internal",
            json={"record_date": "2025-07-10", "base_amount": 100, "vat_rate": 21},
        )
        data = client.get("/api/reports/income-statement", params={"year": 2025, "quarter": 3}).json()
        assert data["income"]["net_amount"] == 1020.0
        assert data["expenses"]["net_amount"] == 121.0
        assert data["result"] == 899.0
