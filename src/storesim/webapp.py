from __future__ import annotations

import threading
from pathlib import Path

from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storesim.aggregate import build_aggregate_summary, build_balance_alerts, has_critical
from storesim.policy import AutomationConfig
from storesim.presets import SCENARIOS
from storesim.protocol import AgentSession, serialize_state
from storesim.reporting import AutomationReport
from storesim.runner import run_batch
from storesim.storage import json_safe, write_report

_lock = threading.Lock()


def create_app() -> FastAPI:
    app = FastAPI(title="Store Operation Simulator API")

    # Allow Vite dev server or other local frontends.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    session = AgentSession()

    @app.get("/api/state")
    def api_state():
        with _lock:
            dto = serialize_state(session.state)
        return json_safe(dto)

    @app.post("/api/reset")
    def api_reset(payload: dict = Body(default={})):
        seed_raw = payload.get("seed", None)
        try:
            seed = int(seed_raw) if seed_raw is not None else None
        except (TypeError, ValueError):
            return {"error": "seed must be an integer"}
        with _lock:
            session.reset(seed)
            dto = serialize_state(session.state)
        return json_safe(dto)

    @app.post("/api/actions")
    def api_actions(payload: dict = Body(default={})):
        """Apply one action ({"type": ..., **fields}) or a list under "actions", stopping at the first rejection."""

        actions = payload.get("actions")
        if actions is None:
            actions = [payload]
        if not isinstance(actions, list) or not actions:
            return {"error": "actions must be a non-empty list"}
        applied = 0
        with _lock:
            for a in actions:
                resp = session.act(a)
                if not resp["success"]:
                    return {"error": resp["error"], "applied": applied, "state": json_safe(serialize_state(session.state))}
                applied += 1
            dto = serialize_state(session.state)
        return {"applied": applied, "state": json_safe(dto)}

    @app.get("/api/query/{name}")
    def api_query(name: str):
        with _lock:
            resp = session.query(name)
        if not resp["success"]:
            return {"error": resp["error"]}
        return resp["data"]

    @app.post("/api/rpc")
    def api_rpc(payload: dict = Body(default={})):
        with _lock:
            return session.handle(payload)

    @app.post("/api/automation/run")
    def api_automation_run(payload: dict = Body(default={})):
        mode = str(payload.get("mode") or "quick")
        scenarios = payload.get("scenarios")
        if scenarios is not None:
            if not isinstance(scenarios, list) or any(s not in SCENARIOS for s in scenarios):
                return {"error": f"scenarios must be a list of: {sorted(SCENARIOS)}"}
        try:
            weeks = payload.get("weeks")
            seeds = payload.get("seeds")
            cfg = AutomationConfig.for_mode(
                mode,
                max_weeks=max(1, min(52, int(weeks))) if weeks is not None else None,
                seeds_per_scenario=max(1, min(20, int(seeds))) if seeds is not None else None,
                base_seed=int(payload["seed"]) if payload.get("seed") is not None else None,
                scenario_ids=scenarios or None,
            )
        except (TypeError, ValueError):
            return {"error": "weeks, seeds and seed must be integers"}

        runs = run_batch(cfg)
        agg = build_aggregate_summary(runs)
        alerts = build_balance_alerts(runs, agg, cfg.alerts)
        report = AutomationReport.build(cfg, agg, alerts, runs)
        out = {"critical": has_critical(alerts), "report": json_safe(report.to_dict())}
        if payload.get("out"):
            json_path, md_path = write_report(report, Path(str(payload["out"])))
            out["paths"] = {"json": str(json_path), "md": str(md_path)}
        return out

    return app


app = create_app()
