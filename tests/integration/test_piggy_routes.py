import pytest

API = "/api/v1/piggy"


async def _ingest(client, user_id: str, txn_id: str, amount: float, **extra):
    resp = await client.post(
        f"{API}/{user_id}/transactions",
        json={"id": txn_id, "amount": amount, "merchant": "Test Store", **extra},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"

    ready = await client.get("/ready")
    assert ready.json()["db_connected"] is True


@pytest.mark.asyncio
@pytest.mark.integration
async def test_config_presets(client):
    resp = await client.get("/api/v1/config/presets")
    assert resp.status_code == 200
    presets = {p["name"]: p for p in resp.json()}
    assert set(presets) == {"safe", "balanced", "growth"}
    weights = {a["symbol"]: a["weight_pct"] for a in presets["balanced"]["allocations"]}
    assert weights == {"NIFTYBEES": 70.0, "GOLDBEES": 30.0}

    missing = await client.get("/api/v1/config/presets/yolo")
    assert missing.status_code == 404

    roundup = await client.get("/api/v1/config/roundup")
    assert roundup.json()["default_rule"]["round_to_nearest"] == 10.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_default_settings(client):
    resp = await client.get(f"{API}/u1/settings")
    assert resp.status_code == 200
    data = resp.json()
    assert data["roundup_rule"] == {"round_to_nearest": 10.0, "min_roundup": 1.0, "max_roundup": 50.0}
    assert data["portfolio_preset"] == "balanced"
    assert data["weekly_target"] == 200.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_ingest_credits_roundup_once(client):
    first = await _ingest(client, "u1", "t1", 127, upi_ref="UPI1234567890")
    assert first == {"transaction_id": "t1", "stored": True, "roundup": 3.0}

    again = await _ingest(client, "u1", "t1", 127)
    assert again["stored"] is False
    assert again["roundup"] == 0.0

    exact = await _ingest(client, "u1", "t2", 130)
    assert exact["roundup"] == 0.0

    incoming = await _ingest(client, "u1", "t3", 95, direction="credit")
    assert incoming["roundup"] == 0.0

    ledger = (await client.get(f"{API}/u1/ledger")).json()
    assert ledger["balance"] == 3.0
    assert [e["id"] for e in ledger["entries"]] == ["roundup_t1"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_rule_change_recomputes_ledger(client):
    await _ingest(client, "u1", "t1", 127)
    await _ingest(client, "u1", "t2", 141)

    resp = await client.put(f"{API}/u1/settings", json={"round_to_nearest": 20})
    assert resp.status_code == 200
    assert resp.json()["roundup_rule"]["round_to_nearest"] == 20.0

    ledger = (await client.get(f"{API}/u1/ledger")).json()
    credits = {e["id"]: e["amount"] for e in ledger["entries"]}
    assert credits == {"roundup_t1": 13.0, "roundup_t2": 19.0}
    assert ledger["balance"] == 32.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_invalid_settings_rejected(client):
    bad_step = await client.put(f"{API}/u1/settings", json={"round_to_nearest": 15})
    assert bad_step.status_code == 422

    bad_bounds = await client.put(f"{API}/u1/settings", json={"min_roundup": 10, "max_roundup": 5})
    assert bad_bounds.status_code == 422

    bad_preset = await client.put(f"{API}/u1/settings", json={"portfolio_preset": "yolo"})
    assert bad_preset.status_code == 404

    # Nothing was stored
    data = (await client.get(f"{API}/u1/settings")).json()
    assert data["roundup_rule"]["round_to_nearest"] == 10.0
    assert data["portfolio_preset"] == "balanced"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sweep_below_minimum(client):
    await client.post(f"{API}/u1/topup", json={"amount": 50})

    resp = await client.post(f"{API}/u1/sweep", json={})
    assert resp.status_code == 200
    data = resp.json()
    assert data["executed"] is False
    assert data["orders"] == []

    ledger = (await client.get(f"{API}/u1/ledger")).json()
    assert ledger["balance"] == 50.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_topup_sweep_dashboard_flow(client):
    await _ingest(client, "u1", "t1", 127)
    topup = await client.post(f"{API}/u1/topup", json={"amount": 1000})
    assert topup.status_code == 200
    assert topup.json()["type"] == "manual_topup"

    before = (await client.get(f"{API}/u1/dashboard")).json()
    assert before["piggy_balance"] == 1003.0
    assert before["sweep_eligible"] is True
    assert before["portfolio_value"] == 0.0
    assert before["gains_percent"] == 0.0

    resp = await client.post(f"{API}/u1/sweep", json={})
    assert resp.status_code == 200
    sweep = resp.json()
    assert sweep["executed"] is True
    assert sweep["requested_amount"] == 1003.0
    assert {o["symbol"] for o in sweep["orders"]} == {"NIFTYBEES", "GOLDBEES"}
    assert sweep["invested_amount"] <= 1003.0
    assert sweep["residual_amount"] == pytest.approx(1003.0 - sweep["invested_amount"], abs=0.01)

    after = (await client.get(f"{API}/u1/dashboard")).json()
    assert after["piggy_balance"] == pytest.approx(sweep["residual_amount"], abs=0.01)
    assert after["total_invested"] == pytest.approx(sweep["invested_amount"], abs=0.01)
    assert after["total_gains"] == pytest.approx(0.0, abs=0.01)
    assert after["weekly_roundup_count"] == 1
    assert {a["symbol"] for a in after["assets"]} == {"NIFTYBEES", "GOLDBEES"}

    ledger = (await client.get(f"{API}/u1/ledger")).json()
    assert [e["type"] for e in ledger["entries"]] == [
        "manual_topup",
        "investment_debit",
        "roundup_credit",
    ]

    # Holdings agree with order history
    rebuild = (await client.post(f"{API}/u1/holdings/rebuild")).json()
    assert rebuild == {"rebuilt": False, "symbols": []}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_price_refresh_and_rebalance(client):
    await client.post(f"{API}/u1/topup", json={"amount": 1000})
    await client.post(f"{API}/u1/sweep", json={})

    resp = await client.post(
        f"{API}/u1/holdings/refresh",
        json={"prices": {"NIFTYBEES": 571.0}},
    )
    assert resp.status_code == 200
    holdings = {h["symbol"]: h for h in resp.json()["holdings"]}
    assert holdings["NIFTYBEES"]["current_price"] == 571.0
    assert holdings["NIFTYBEES"]["avg_cost"] == 285.5
    assert holdings["GOLDBEES"]["current_price"] == 65.25

    recs = (await client.post(
        f"{API}/u1/rebalance",
        json={"prices": {"NIFTYBEES": 571.0}},
    )).json()
    actions = {r["symbol"]: r["action"] for r in recs}
    assert actions == {"NIFTYBEES": "sell", "GOLDBEES": "buy"}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_sweep_with_price_override_and_amount(client):
    await client.post(f"{API}/u1/topup", json={"amount": 5000})

    resp = await client.post(
        f"{API}/u1/sweep",
        json={"amount": 1000, "prices": {"NIFTYBEES": 100, "GOLDBEES": 50}},
    )
    data = resp.json()
    assert data["requested_amount"] == 1000.0
    assert data["invested_amount"] == 1000.0
    orders = {o["symbol"]: o["quantity"] for o in data["orders"]}
    assert orders == {"NIFTYBEES": 7.0, "GOLDBEES": 6.0}

    ledger = (await client.get(f"{API}/u1/ledger")).json()
    assert ledger["balance"] == 4000.0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_topup_rejects_non_positive(client):
    resp = await client.post(f"{API}/u1/topup", json={"amount": 0})
    assert resp.status_code == 422


@pytest.mark.asyncio
@pytest.mark.integration
@pytest.mark.parametrize("amount", ["127.995", "1e30"])
async def test_transaction_amount_out_of_range_rejected(client, amount):
    resp = await client.post(
        f"{API}/u1/transactions",
        json={"id": "t1", "amount": amount, "merchant": "Test Store"},
    )
    assert resp.status_code == 422

    ledger = (await client.get(f"{API}/u1/ledger")).json()
    assert ledger["entries"] == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_topup_rejects_sub_paisa_amount(client):
    resp = await client.post(f"{API}/u1/topup", json={"amount": "10.005"})
    assert resp.status_code == 422
