from __future__ import annotations

import io
import json
import tempfile
from pathlib import Path

from fastapi.testclient import TestClient

from storesim.cli import main as cli_main
from storesim.protocol import AgentSession, serve
from storesim.webapp import create_app


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


# ---------------------------------------------------------------------------
# Batch CLI
# ---------------------------------------------------------------------------


def test_cli_writes_report_and_exit_code() -> None:
    with tempfile.TemporaryDirectory() as td:
        out = Path(td) / "report"
        rc = cli_main(["--weeks", "2", "--seeds", "1", "--scenario", "mixue_community", "--out", str(out)])
        # two weeks can never reach the profit streak, so the win rate alert is critical
        _assert(rc == 2, f"critical alert should exit with 2, got {rc}")
        data = json.loads((out / "report.json").read_text(encoding="utf-8"))
        for key in ("generated_at", "config", "aggregate", "balance_alerts", "runs"):
            _assert(key in data, f"report.json should contain {key}")
        _assert(data["config"]["max_weeks"] == 2 and data["config"]["seeds_per_scenario"] == 1, "config overrides recorded")
        _assert(len(data["runs"]) == 1 and data["runs"][0]["scenario_id"] == "mixue_community", "one run for one scenario")
        _assert(any(a["code"] == "WIN_RATE_TOO_LOW" for a in data["balance_alerts"]), "win rate alert expected")
        md = (out / "report.md").read_text(encoding="utf-8")
        _assert(md.startswith("# 自动化平衡测试报告"), "markdown report title")
        for section in ("## 总体指标", "## 高优先级告警", "## 场景结果", "## 异常统计"):
            _assert(section in md, f"markdown should contain {section}")


# ---------------------------------------------------------------------------
# Agent protocol
# ---------------------------------------------------------------------------


def test_protocol_envelope() -> None:
    s = AgentSession(seed=1)
    bad = json.loads(s.handle_line("{not json"))
    _assert(bad == {"id": None, "success": False, "error": "Invalid JSON"}, f"unexpected: {bad}")
    missing = json.loads(s.handle_line('{"id": 3}'))
    _assert(missing["id"] == 3 and missing["error"] == "Missing required fields: id, type", f"unexpected: {missing}")
    _assert(s.handle_line("   ") is None, "blank lines are ignored")

    pong = s.handle({"id": "p", "type": "meta", "command": "ping"})
    _assert(pong == {"id": "p", "success": True, "data": "pong"}, f"unexpected: {pong}")
    unknown = s.handle({"id": 1, "type": "query", "query": "weather"})
    _assert(not unknown["success"] and unknown["error"] == "Unknown query: weather", "unknown query should fail")
    kind = s.handle({"id": 1, "type": "dance"})
    _assert(not kind["success"], "unknown request type should fail")


def test_protocol_actions_and_queries() -> None:
    s = AgentSession(seed=1)
    r = s.handle({"id": 1, "type": "action", "action": {"type": "select_brand", "brand_id": "luckin"}})
    _assert(r["success"], f"select_brand should succeed: {r}")
    _assert(r["data"]["state"]["brand"]["id"] == "luckin", "state view should show the brand")

    r = s.handle({"id": 2, "type": "action", "action": {"type": "next_week"}})
    _assert(not r["success"] and r["error"] == "仅经营阶段可推进周", "next_week during setup should fail")
    r = s.handle({"id": 3, "type": "action", "action": {"type": "teleport"}})
    _assert(not r["success"] and "unknown action type" in r["error"], "unknown action should fail")

    brands = s.handle({"id": 4, "type": "query", "query": "brands"})
    _assert(any(b["brand_id"] == "mixue" for b in brands["data"]), "brand catalog should be queryable")
    info = s.handle({"id": 5, "type": "query", "query": "game_info"})
    _assert(info["data"] == {"can_open": False, "game_result": None}, f"unexpected game info: {info}")
    acts = s.handle({"id": 6, "type": "query", "query": "available_actions"})
    types = {a["type"] for a in acts["data"]}
    _assert("select_location" in types, "setup actions should include select_location")
    _assert("open_store" not in types, "open_store is offered only once the store can open")
    _assert(s.handle({"id": 7, "type": "query", "query": "supply_demand"})["data"] is None, "no settlement during setup")
    view = s.handle({"id": 9, "type": "query", "query": "state"})["data"]
    _assert(view["boss"]["action"] == "supervise" and view["pending_event"] is None, "state view should show the boss action and no pending event")
    channels = s.handle({"id": 10, "type": "query", "query": "recruitment_channels"})["data"]
    _assert({c["channel_id"] for c in channels} >= {"walk_in", "agency"}, "recruitment channels should be queryable")
    boss = s.handle({"id": 11, "type": "query", "query": "boss_actions"})["data"]
    _assert(any(b["action_id"] == "industry_dinner" for b in boss), "boss actions should be queryable")

    r = s.handle({"id": 8, "type": "meta", "command": "reset", "params": {"seed": 2}})
    _assert(r["success"] and r["data"]["brand"] is None and s.seed == 2, "reset should start a fresh game")


def test_serve_loop() -> None:
    src = io.StringIO('{"id": 1, "type": "meta", "command": "ping"}\n\nbroken\n')
    dst = io.StringIO()
    rc = serve(AgentSession(seed=1), src, dst)
    lines = dst.getvalue().splitlines()
    _assert(rc == 0 and len(lines) == 2, f"one response per non-blank line, got {lines}")
    _assert(json.loads(lines[0])["data"] == "pong", "first answer is pong")
    _assert(json.loads(lines[1])["error"] == "Invalid JSON", "second answer reports invalid JSON")


# ---------------------------------------------------------------------------
# HTTP API
# ---------------------------------------------------------------------------


def test_http_state_and_actions() -> None:
    c = TestClient(create_app())
    c.post("/api/reset", json={"seed": 4})
    s = c.get("/api/state").json()
    _assert(s["phase"] == "setup" and s["cash"] == 400000, f"fresh game expected: {s}")

    r = c.post("/api/actions", json={"actions": [
        {"type": "select_brand", "brand_id": "mixue"},
        {"type": "select_location", "location_id": "community"},
        {"type": "select_address", "address_id": "community_entrance"},
    ]}).json()
    _assert(r.get("applied") == 3, f"three actions should apply: {r}")
    _assert(r["state"]["address"]["id"] == "community_entrance", "address should be selected")

    r = c.post("/api/actions", json={"type": "toggle_product", "product_id": "burger"}).json()
    _assert(r.get("error") == "Category meal not allowed", f"drink-only brand should reject burger: {r}")
    _assert(r["applied"] == 0, "nothing applied on rejection")

    q = c.get("/api/query/locations").json()
    _assert(isinstance(q, list) and len(q) == 5, "five locations in the catalog")
    _assert("error" in c.get("/api/query/nope").json(), "unknown query should return an error")


def test_http_rpc_and_reset() -> None:
    c = TestClient(create_app())
    r = c.post("/api/rpc", json={"id": 9, "type": "meta", "command": "ping"}).json()
    _assert(r == {"id": 9, "success": True, "data": "pong"}, f"unexpected rpc: {r}")
    r = c.post("/api/rpc", json={"type": "meta"}).json()
    _assert(r["success"] is False, "rpc without id should fail")
    r = c.post("/api/reset", json={"seed": "x"}).json()
    _assert("error" in r, "non-integer seed should be rejected")


def test_http_automation_run() -> None:
    c = TestClient(create_app())
    r = c.post("/api/automation/run", json={"weeks": 1, "seeds": 1, "scenarios": ["mixue_community"]}).json()
    _assert("report" in r, f"automation should return a report: {r}")
    _assert(r["report"]["aggregate"]["total_runs"] == 1, "one run expected")
    _assert(r["critical"] is True, "a one-week batch cannot win, so the alert is critical")
    r = c.post("/api/automation/run", json={"scenarios": ["nope"]}).json()
    _assert("error" in r, "unknown scenario should be rejected")


def main() -> None:
    tests = [
        test_cli_writes_report_and_exit_code,
        test_protocol_envelope,
        test_protocol_actions_and_queries,
        test_serve_loop,
        test_http_state_and_actions,
        test_http_rpc_and_reset,
        test_http_automation_run,
    ]
    for t in tests:
        t()
        print(f"OK  {t.__name__}")
    print(f"ALL OK ({len(tests)} tests)")


if __name__ == "__main__":
    main()
