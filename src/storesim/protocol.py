from __future__ import annotations

import json
import random
import sys
from dataclasses import asdict
from typing import Any, Callable, Dict, Optional, TextIO

from storesim import catalog
from storesim.actions import action_from_dict, dispatch
from storesim.engine import create_initial_state
from storesim.models import GameState
from storesim.query import available_actions, can_open, game_result, stats, supply_demand
from storesim.storage import dumps, json_safe, state_to_dict

META_COMMANDS = ("ping", "reset", "state", "help")


def serialize_state(state: GameState) -> Dict[str, Any]:
    """Compact, agent-friendly view of the game state."""

    brand = state.brand()
    location = state.location()
    address = state.address()
    deco = state.decoration()
    return {
        "phase": state.phase,
        "game_over_reason": state.game_over_reason,
        "week": state.current_week,
        "total_weeks": state.total_weeks,
        "season": state.season,
        "cash": round(state.cash),
        "total_investment": round(state.total_investment),
        "cumulative_profit": round(state.cumulative_profit),
        "consecutive_profits": state.consecutive_profits,
        "brand": {"id": brand.brand_id, "name": brand.name, "type": brand.brand_type} if brand else None,
        "location": {"id": location.location_id, "name": location.name} if location else None,
        "address": {"id": address.address_id, "name": address.name, "area": address.area} if address else None,
        "decoration": {"id": deco.decoration_id, "name": deco.name, "level": deco.level} if deco else None,
        "products": [
            {"id": p.product_id, "name": p.name, "category": p.category, "price": state.price_of(p)}
            for p in state.products()
        ],
        "staff": [
            {
                "id": m.staff_id,
                "name": m.name,
                "type": m.type_id,
                "task": m.assigned_task,
                "skill": m.skill_level,
                "morale": round(m.morale, 1),
                "fatigue": round(m.fatigue, 1),
                "work_days": m.work_days,
                "work_hours": m.work_hours,
                "wants_to_quit": m.wants_to_quit,
                "is_onboarding": m.is_onboarding,
            }
            for m in state.staff
        ],
        "exposure": round(state.exposure, 1),
        "reputation": round(state.reputation, 1),
        "cleanliness": round(state.cleanliness, 1),
        "cognition_level": state.cognition.level,
        "marketing": [m.activity_id for m in state.marketing],
        "platforms": [
            {
                "id": p.platform_id,
                "exposure": round(p.platform_exposure, 1),
                "promotion": p.promotion_tier_id,
                "discount": p.discount_tier_id,
                "pricing": p.pricing_id,
                "packaging": p.packaging_tier_id,
            }
            for p in state.delivery.platforms
        ],
        "supply_priority": state.supply_priority,
        "boss": {
            "action": state.boss.current_action,
            "work_role": state.boss.work_role,
            "target_shop_id": state.boss.target_shop_id,
            "buffs": [asdict(b) for b in state.boss.active_buffs],
            "latest_findings": [asdict(o) for o in state.boss.investigation_history[-3:]],
        },
        "pending_event": state.pending_event_id,
        "event_buffs": [asdict(b) for b in state.active_event_buffs],
        "weekly_summary": asdict(state.weekly_summary) if state.weekly_summary else None,
    }


def _catalog(table: Dict[str, Any]) -> list:
    return [asdict(x) for x in table.values()]


def _maybe(obj: Any) -> Any:
    return asdict(obj) if obj is not None else None


class AgentSession:
    """One game driven by JSON requests. Never raises for malformed input."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self.reset(seed)

    def reset(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self.rng = random.Random(seed)
        self.state = create_initial_state()

    # ---- queries ----

    def _queries(self) -> Dict[str, Callable[[], Any]]:
        s = self.state
        return {
            "state": lambda: serialize_state(s),
            "available_actions": lambda: [asdict(a) for a in available_actions(s)],
            "stats": lambda: asdict(stats(s)),
            "supply_demand": lambda: _maybe(supply_demand(s)),
            "game_info": lambda: {"can_open": can_open(s), "game_result": _maybe(game_result(s))},
            "brands": lambda: _catalog(catalog.BRANDS),
            "locations": lambda: _catalog(catalog.LOCATIONS),
            "products": lambda: _catalog(catalog.PRODUCTS),
            "decorations": lambda: _catalog(catalog.DECORATIONS),
            "staff_types": lambda: _catalog(catalog.STAFF_TYPES),
            "marketing_activities": lambda: _catalog(catalog.MARKETING_ACTIVITIES),
            "delivery_platforms": lambda: _catalog(catalog.PLATFORMS),
            "recruitment_channels": lambda: _catalog(catalog.RECRUITMENT_CHANNELS),
            "boss_actions": lambda: _catalog(catalog.BOSS_ACTIONS),
        }

    def query(self, name: str) -> Dict[str, Any]:
        fn = self._queries().get(name)
        if fn is None:
            return {"success": False, "error": f"Unknown query: {name}"}
        return {"success": True, "data": json_safe(fn())}

    # ---- actions ----

    def act(self, payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            return {"success": False, "error": "Missing action"}
        try:
            action = action_from_dict(payload)
        except ValueError as e:
            return {"success": False, "error": str(e)}
        result = dispatch(self.state, action, self.rng)
        if not result.changed:
            return {"success": False, "error": result.error or "Action rejected"}
        self.state = result.state
        return {"success": True, "data": json_safe({"changed": True, "state": serialize_state(self.state)})}

    # ---- meta ----

    def meta(self, command: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if command == "ping":
            return {"success": True, "data": "pong"}
        if command == "reset":
            seed = params.get("seed", self.seed)
            if seed is not None and (not isinstance(seed, int) or isinstance(seed, bool)):
                return {"success": False, "error": "seed must be an integer"}
            self.reset(seed)
            return {"success": True, "data": json_safe(serialize_state(self.state))}
        if command == "state":
            return {"success": True, "data": json_safe(state_to_dict(self.state))}
        if command == "help":
            return {
                "success": True,
                "data": {
                    "types": ["action", "query", "meta"],
                    "queries": sorted(self._queries()),
                    "meta": list(META_COMMANDS),
                },
            }
        return {"success": False, "error": f"Unknown meta command: {command}"}

    # ---- envelope ----

    def handle(self, request: Any) -> Dict[str, Any]:
        if not isinstance(request, dict) or "id" not in request or "type" not in request:
            rid = request.get("id") if isinstance(request, dict) else None
            return {"id": rid, "success": False, "error": "Missing required fields: id, type"}
        kind = request["type"]
        if kind == "action":
            resp = self.act(request.get("action"))
        elif kind == "query":
            resp = self.query(str(request.get("query", "")))
        elif kind == "meta":
            params = request.get("params") or {}
            resp = self.meta(str(request.get("command", "")), params if isinstance(params, dict) else {})
        else:
            resp = {"success": False, "error": f"Unknown request type: {kind}"}
        return {"id": request["id"], **resp}

    def handle_line(self, line: str) -> Optional[str]:
        line = line.strip()
        if not line:
            return None
        try:
            request = json.loads(line)
        except json.JSONDecodeError:
            return dumps({"id": None, "success": False, "error": "Invalid JSON"}, indent=None)
        return dumps(self.handle(request), indent=None)


def serve(session: AgentSession, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> int:
    """Read one JSON request per line until EOF, answer one JSON line each."""

    src = stdin or sys.stdin
    dst = stdout or sys.stdout
    for line in src:
        out = session.handle_line(line)
        if out is None:
            continue
        dst.write(out + "\n")
        dst.flush()
    return 0
