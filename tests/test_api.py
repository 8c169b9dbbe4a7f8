SALES = {"X-POWERQUOTE-USER": "u-sales"}
ADMIN = {"X-POWERQUOTE-USER": "u-admin"}
FINANCE = {"X-POWERQUOTE-USER": "u-finance"}
MASTER = {"X-POWERQUOTE-USER": "u-master"}

RACK = {
    "product_id": "qtms-ltx",
    "slot_assignments": {"1": "ltx-relay", "3": "ltx-bushing"},
    "card_configurations": {"slot-3": {"numberOfBushings": 2}},
}

CUSTOMER = {"customer_name": "Grid Co", "oracle_customer_id": "ORA-1001", "sfdc_opportunity": "006-GRID-17"}


def test_health_and_routes(client):
    assert client.get("/health").json() == {"message": "ok"}
    paths = {r["path"] for r in client.get("/__debug/routes").json()}
    assert "/workflow/{quote_id}/submit" in paths
    assert "/bom/part-number" in paths


def test_identity_header_is_required(client):
    assert client.get("/quotes").status_code == 401
    assert client.get("/quotes", headers={"X-POWERQUOTE-USER": "ghost"}).status_code == 403


def test_quote_lifecycle_over_http(client):
    r = client.post("/quotes", json={**CUSTOMER, "items": [RACK]}, headers=SALES)
    assert r.status_code == 201
    quote = r.json()
    quote_id = quote["id"]
    assert quote["workflow_state"] == "draft"
    assert quote["bom_items"][0]["part_number"] == "QTMS-LTX-R0B2" + "0" * 11 + "-0"

    r = client.patch(f"/quotes/{quote_id}", json={"requested_discount": 5}, headers=SALES)
    assert r.status_code == 200
    assert r.json()["requested_discount"] == 5

    r = client.post(f"/workflow/{quote_id}/submit", headers=SALES)
    assert r.json()["workflow_state"] == "submitted"
    assert r.json()["lane"] == "admin"

    assert client.patch(f"/quotes/{quote_id}", json={"priority": "High"}, headers=SALES).status_code == 400

    queue = client.get("/workflow/queue/admin", headers=ADMIN).json()
    assert [q["id"] for q in queue] == [quote_id]

    r = client.post(f"/workflow/{quote_id}/claim", json={"lane": "admin"}, headers=ADMIN)
    assert r.json()["workflow_state"] == "admin_review"

    r = client.post(f"/workflow/{quote_id}/admin-decision", json={"decision": "approved"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["workflow_state"] == "approved"
    assert r.json()["lane"] is None

    events = client.get(f"/quotes/{quote_id}/events", headers=SALES).json()
    assert [e["event_type"] for e in events] == ["quote_submitted", "quote_claimed_admin", "quote_admin_decision"]


def test_workflow_errors_map_to_http_status(client):
    quote_id = client.post("/quotes", json={**CUSTOMER, "items": [{"product_id": "ltx-relay", "unit_price": 450}]}, headers=SALES).json()["id"]

    assert client.post(f"/workflow/{quote_id}/claim", json={"lane": "admin"}, headers=SALES).status_code == 403
    assert client.post(f"/workflow/{quote_id}/claim", json={"lane": "admin"}, headers=ADMIN).status_code == 400
    assert client.post(f"/workflow/{quote_id}/claim", json={"lane": "nowhere"}, headers=ADMIN).status_code == 422
    assert client.post("/workflow/missing/submit", headers=SALES).status_code == 404

    check = client.get(f"/workflow/{quote_id}/approval-check", headers=SALES).json()
    assert check["required"] is True
    assert check["reason"] == "Margin 11.1% is below threshold of 25%"

    client.post(f"/workflow/{quote_id}/submit", headers=SALES)
    client.post(f"/workflow/{quote_id}/claim", json={"lane": "admin"}, headers=ADMIN)
    r = client.post(f"/workflow/{quote_id}/admin-decision", json={"decision": "requires_finance"}, headers=ADMIN)
    assert r.json()["lane"] == "finance"

    r = client.post(f"/workflow/{quote_id}/finance-decision", json={"decision": "approved"}, headers=FINANCE)
    assert r.status_code == 422
    assert r.json()["detail"] == "Margin is still below the finance guardrail"


def test_finance_margin_limit_endpoints(client):
    assert client.get("/workflow/finance-margin-limit", headers=SALES).json()["percent"] == 25
    assert client.put("/workflow/finance-margin-limit", json={"percent": 30}, headers=SALES).status_code == 403
    assert client.put("/workflow/finance-margin-limit", json={"percent": 0}, headers=FINANCE).status_code == 400

    r = client.put("/workflow/finance-margin-limit", json={"percent": 30, "currency": "EUR"}, headers=FINANCE)
    assert r.status_code == 200
    assert client.get("/workflow/finance-margin-limit", headers=SALES).json()["percent"] == 30


def test_bom_endpoints(client):
    payload = {"chassis_id": "qtms-ltx", "slot_assignments": {"1": "ltx-relay"}, "has_remote_display": True}
    r = client.post("/bom/part-number", json=payload, headers=SALES)
    assert r.json() == {"part_number": "QTMS-LTX-R" + "0" * 13 + "-RD"}

    line = client.post("/bom/consolidate", json=payload, headers=SALES).json()
    assert line["price"] == 4200 + 850
    assert [c["product_id"] for c in line["components"]] == ["qtms-ltx", "ltx-relay"]

    bad = {"chassis_id": "qtms-ltx", "slot_assignments": {"14": "ltx-bushing"}}
    assert client.post("/bom/part-number", json=bad, headers=SALES).status_code == 400

    r = client.post(
        "/bom/margin",
        json={"items": [{"product_id": "ltx-relay", "quantity": 2}], "requested_discount": 50},
        headers=SALES,
    ).json()
    assert r["totals"]["discounted_value"] == 850
    assert r["approval"]["required"] is True

    zero_qty = {"items": [{"product_id": "ltx-relay", "quantity": 0}]}
    assert client.post("/bom/margin", json=zero_qty, headers=SALES).status_code == 422


def test_product_endpoints(client):
    tree = client.get("/products/tree", headers=SALES).json()
    assert {n["id"] for n in tree} == {"qtms", "tm8", "qpdm"}

    card = {"id": "ltx-display", "name": "Display", "product_level": 3, "parent_product_id": "qtms-ltx", "price": 5}
    assert client.post("/products", json=card, headers=SALES).status_code == 403
    assert client.post("/products", json=card, headers=ADMIN).status_code == 201
    assert client.patch("/products/ltx-display", json={"price": 7}, headers=ADMIN).json()["price"] == 7

    csv = b"id,name,product_level,parent_product_id,price,cost\nmtx-relay,MTX Relay,3,qtms-mtx,800,380\n"
    r = client.post("/products/import", files={"file": ("products.csv", csv, "text/csv")}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["created"] == 1

    exported = client.get("/products/export", headers=ADMIN)
    assert exported.headers["content-type"].startswith("text/csv")
    assert "mtx-relay" in exported.text

    cfg = client.get("/products/qtms-ltx/part-number-config", headers=SALES).json()
    assert cfg["config"]["prefix"] == "QTMS-LTX-"
    assert cfg["codes"]["ltx-bushing"]["slot_span"] == 2


def test_clone_delete_and_analytics(client):
    quote_id = client.post("/quotes", json={"items": [RACK]}, headers=SALES).json()["id"]

    clone = client.post(f"/quotes/{quote_id}/clone", headers=MASTER)
    assert clone.status_code == 201
    assert clone.json()["id"] == "max.master-QLT-1"
    assert len(clone.json()["bom_items"]) == 1

    assert client.get(f"/quotes/{clone.json()['id']}", headers=SALES).status_code == 403
    assert client.delete(f"/quotes/{quote_id}", headers=SALES).status_code == 204
    assert client.get(f"/quotes/{quote_id}", headers=SALES).status_code == 404

    analytics = client.get("/quotes/analytics", headers=MASTER).json()
    assert analytics["monthly"]["under_analysis"] == 1
    assert len(analytics["monthly_breakdown"]) == 12


def test_part_number_admin_payloads_over_http(client):
    bad_count = client.put("/products/qtms-mtx/part-number-config", json={"slot_count": "abc"}, headers=ADMIN)
    assert bad_count.status_code == 422
    bad_span = client.put("/products/qtms-ltx/part-number-codes/ltx-relay", json={"slot_span": "two"}, headers=ADMIN)
    assert bad_span.status_code == 422

    r = client.put("/products/qtms-ltx/part-number-codes/ltx-relay", json={"template": "R2", "slot_span": 1}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["template"] == "R2"
    r = client.put("/products/qtms-mtx/part-number-config", json={"slot_count": 7, "remote_display_code": "RD"}, headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["slot_count"] == 7


def test_submit_checks_quote_fields_over_http(client):
    quote_id = client.post("/quotes", json={"items": [RACK]}, headers=SALES).json()["id"]
    r = client.post(f"/workflow/{quote_id}/submit", headers=SALES)
    assert r.status_code == 400
    assert r.json()["detail"] == "Missing required fields: Oracle Customer ID, SFDC Opportunity"

    fields = client.get("/workflow/quote-fields", headers=SALES).json()
    required = [f["id"] for f in fields if f["required"]]
    assert required == [
        "customer_name", "oracle_customer_id", "sfdc_opportunity", "payment_terms", "shipping_terms", "currency",
    ]

    relaxed = [dict(f, required=False) for f in fields]
    assert client.put("/workflow/quote-fields", json=relaxed, headers=SALES).status_code == 403
    assert client.put("/workflow/quote-fields", json=relaxed, headers=ADMIN).status_code == 200
    assert client.post(f"/workflow/{quote_id}/submit", headers=SALES).json()["workflow_state"] == "submitted"
