import json

import pytest

import app.cli as cli


@pytest.fixture
def candles_csv(tmp_path):
    path = tmp_path / "candles.csv"
    path.write_text(
        "timestamp,close\n"
        "2024-01-01T00:00:00Z,100\n"
        "2024-01-01T01:00:00Z,101\n"
        "2024-01-01T02:00:00Z,104.5\n"
    )
    return path


@pytest.fixture(autouse=True)
def quiet(monkeypatch, tmp_path):
    # keep the root logger untouched and runs inside tmp_path
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **kw: None)
    monkeypatch.setenv("BACKTEST_RESULTS_DIR", str(tmp_path / "runs"))


def test_cli_prints_summary(candles_csv, capsys):
    code = cli.main([
        "--data", str(candles_csv),
        "--strategy", "price_threshold",
        "--strategy-params", '{"buy_below": 100}',
    ])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["total_trades"] == 1
    assert out["final_balance"] == pytest.approx(10_450)
    assert "trades" not in out


def test_cli_save_and_trades(candles_csv, capsys, tmp_path):
    code = cli.main([
        "--data", str(candles_csv),
        "--strategy", "price_threshold",
        "--strategy-params", '{"buy_below": 100}',
        "--trades",
        "--save",
    ])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert len(out["trades"]) == 2
    assert (tmp_path / "runs" / out["run_id"] / "summary.json").exists()


def test_cli_reports_config_errors(candles_csv, capsys):
    code = cli.main([
        "--data", str(candles_csv),
        "--strategy", "price_threshold",
        "--risk-percent", "0",
    ])

    assert code == 2
    err = json.loads(capsys.readouterr().err)
    assert err["field"] == "risk_percent"


def test_cli_bad_params_json(candles_csv, capsys):
    code = cli.main([
        "--data", str(candles_csv),
        "--strategy", "price_threshold",
        "--strategy-params", "{buy_below",
    ])
    assert code == 2
    assert json.loads(capsys.readouterr().err)["field"] == "strategy_params"


def test_cli_missing_file(tmp_path, capsys):
    code = cli.main(["--data", str(tmp_path / "nope.csv"), "--strategy", "rsi_macd"])
    assert code == 2
    assert json.loads(capsys.readouterr().err)["error"] == "file_not_found"


def test_cli_empty_csv(tmp_path, capsys):
    path = tmp_path / "empty.csv"
    path.write_text("")
    code = cli.main(["--data", str(path), "--strategy", "price_threshold"])
    assert code == 2
    err = json.loads(capsys.readouterr().err)
    assert err["error"] == "configuration_error"
    assert err["field"] == "data"


def test_cli_bad_risk_params_fail_before_running(candles_csv, capsys):
    code = cli.main([
        "--data", str(candles_csv),
        "--strategy", "price_threshold",
        "--risk-params", '{"risk_reward_ratio": -1}',
    ])
    assert code == 2
    assert json.loads(capsys.readouterr().err)["field"] == "risk_params.risk_reward_ratio"
