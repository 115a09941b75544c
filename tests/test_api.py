from __future__ import annotations


def _body(**overrides):
    body = {
        "initial_balance": 10000,
        "start_date": "2024-01-01",
        "end_date": "2024-02-01",
        "data": [
            {"timestamp": "2024-01-01T00:00:00Z", "price": 100},
            {"timestamp": "2024-01-01T01:00:00Z", "price": 101},
            {"timestamp": "2024-01-01T02:00:00Z", "price": 104.5},
        ],
        "strategy": "price_threshold",
        "strategy_params": {"buy_below": 100},
        "risk_rule": "fixed_percent",
        "risk_params": {"stop_loss_percent": 2},
        "risk_percent": 2,
        "fee_rate": 0.001,
    }
    body.update(overrides)
    return body


def test_run_backtest(client):
    resp = client.post("/backtests", json=_body())

    assert resp.status_code == 200
    data = resp.json
    assert data["run_id"]
    assert data["strategy"] == "price_threshold"
    assert data["risk_rule"] == "fixed_percent"
    assert data["num_trades"] == 2
    assert data["summary"]["total_trades"] == 1
    assert data["summary"]["winning_trades"] == 1
    assert "trades" not in data["summary"]


def test_get_stored_run(client):
    run_id = client.post("/backtests", json=_body()).json["run_id"]

    resp = client.get(f"/backtests/{run_id}")

    assert resp.status_code == 200
    data = resp.json
    assert data["run_id"] == run_id
    assert [t["action"] for t in data["trades"]] == ["OPEN", "CLOSE"]
    assert data["trades"][1]["reason"] == "take_profit"
    assert data["config"]["num_data_points"] == 3


def test_missing_run_is_404(client):
    resp = client.get("/backtests/20240101T000000000000Z_00000000")
    assert resp.status_code == 404
    assert resp.json["error"] == "not_found"


def test_list_runs_by_date(client):
    client.post("/backtests", json=_body())
    client.post("/backtests", json=_body())

    everything = client.get("/backtests")
    assert everything.status_code == 200
    assert len(everything.json) == 2
    assert all("run_id" in r for r in everything.json)

    old = client.get("/backtests?start=2000-01-01&end=2000-01-02")
    assert old.json == []


def test_list_runs_bad_dates(client):
    assert client.get("/backtests?start=notadate").status_code == 400
    resp = client.get("/backtests?start=2024-02-01&end=2024-01-01")
    assert resp.status_code == 400
    assert resp.json["field"] == "start"


def test_unknown_strategy_is_400(client):
    resp = client.post("/backtests", json=_body(strategy="moon_shot"))
    assert resp.status_code == 400
    assert resp.json["error"] == "unknown_plugin"
    assert resp.json["plugin"] == "moon_shot"


def test_invalid_config_is_400(client):
    resp = client.post("/backtests", json=_body(initial_balance=0))
    assert resp.status_code == 400
    assert resp.json["error"] == "configuration_error"
    assert resp.json["field"] == "initial_balance"


def test_empty_data_is_400(client):
    resp = client.post("/backtests", json=_body(data=[]))
    assert resp.status_code == 400
    assert resp.json["field"] == "data"


def test_non_json_body_is_400(client):
    resp = client.post("/backtests", data="nope", content_type="text/plain")
    assert resp.status_code == 400
    assert resp.json["error"] == "configuration_error"


def test_failed_runs_are_not_persisted(client):
    client.post("/backtests", json=_body(risk_percent=0))
    assert client.get("/backtests").json == []


def test_list_plugins(client):
    strategies = client.get("/strategies").json
    assert [s["name"] for s in strategies] == ["price_threshold", "rsi_macd", "sma_crossover"]

    rules = client.get("/risk-rules").json
    assert {r["name"] for r in rules} == {"fixed_percent", "capped_position_size"}
    assert all("parameters" in r for r in rules)
