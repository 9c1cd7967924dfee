from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from storesim.catalog import (
    AREA_PER_KITCHEN_STATION,
    BOSS_WORK_EFFICIENCY,
    BOSS_WORK_HOURS,
    PRODUCT_CATEGORIES,
    STAFF_TYPES,
    SUPERVISE_EFFICIENCY,
    TASKS,
)
from storesim.models import GameState


@dataclass
class ProductSupplyBreakdown:
    product_id: str
    product_name: str
    inventory_quantity: int
    production_capacity: int
    final_supply: int
    bottleneck: str  # inventory|capacity|none


@dataclass
class SupplyBreakdown:
    staff_count: int = 0
    total_work_hours: float = 0.0
    avg_efficiency: float = 0.0
    product_supplies: List[ProductSupplyBreakdown] = field(default_factory=list)
    total_supply: int = 0

    def product(self, product_id: str) -> Optional[ProductSupplyBreakdown]:
        for ps in self.product_supplies:
            if ps.product_id == product_id:
                return ps
        return None


def crowding_factor(staff_count: int, area: float) -> float:
    stations = max(1, int(math.floor(area / AREA_PER_KITCHEN_STATION)))
    if staff_count <= stations:
        return 1.0
    return stations * math.log2(1 + staff_count / stations) / staff_count


def proficiency_bonus(proficiency: float) -> float:
    return 1 + max(0.0, min(100.0, proficiency)) * 0.003


def calculate_supply(state: GameState, demand_hints: Optional[Dict[str, float]] = None) -> SupplyBreakdown:
    """Split one shared pool of production hours across the menu.

    Each staff member's hours go to the products they can handle in proportion
    to demand_hint × make time (80% to a focus product when set), so the same
    hours are never counted for more than one product. A boss working in the
    store joins the pool at reduced efficiency; a supervising boss speeds
    everyone up.
    """

    products = state.products()
    boss = state.boss
    boss_task = TASKS.get(boss.work_role) if boss.current_action == "work_in_store" and boss.work_role else None
    if not products or (not state.staff and boss_task is None):
        return SupplyBreakdown()
    hints = demand_hints or {}

    has_manager = any(s.assigned_task == "manager" and not s.is_onboarding for s in state.staff)
    manager_boost = 1.1 if has_manager else 1.0

    # [hours, handled categories, focus product, proficiency]
    pool = []
    for s in state.staff:
        if s.is_onboarding:
            continue
        st = STAFF_TYPES.get(s.type_id)
        task = TASKS.get(s.assigned_task)
        if st is None or task is None or task.production <= 0:
            continue
        hours = s.weekly_hours * s.efficiency * task.production * manager_boost
        if hours <= 0:
            continue
        pool.append([hours, st.handles, s.focus_product_id, s.product_proficiency])
    if boss_task is not None and boss_task.production > 0:
        hours = BOSS_WORK_HOURS * BOSS_WORK_EFFICIENCY * boss_task.production * manager_boost
        pool.append([hours, list(PRODUCT_CATEGORIES), None, {}])
    if boss.current_action == "supervise":
        for entry in pool:
            entry[0] *= 1 + SUPERVISE_EFFICIENCY

    address = state.address()
    area = (address.area if address else 0) or state.store_area or 30
    crowd = crowding_factor(len(pool), area)
    if crowd < 1:
        for entry in pool:
            entry[0] *= crowd

    weights = {p.product_id: max(0.01, hints.get(p.product_id, 0.0) * p.make_time / 3600) for p in products}
    effective: Dict[str, float] = {p.product_id: 0.0 for p in products}

    for hours, handles, focus, prof in pool:
        eligible = [p for p in products if p.category in handles]
        if not eligible:
            continue
        if focus and any(p.product_id == focus for p in eligible):
            focus_bonus = proficiency_bonus(prof.get(focus, 0.0))
            effective[focus] += hours * 0.8 * focus_bonus
            others = [p for p in eligible if p.product_id != focus]
            other_weight = sum(weights[p.product_id] for p in others)
            if others and other_weight > 0:
                for p in others:
                    h = hours * 0.2 * weights[p.product_id] / other_weight
                    effective[p.product_id] += h * proficiency_bonus(prof.get(p.product_id, 0.0))
            else:
                effective[focus] += hours * 0.2 * focus_bonus
        else:
            total_weight = sum(weights[p.product_id] for p in eligible)
            for p in eligible:
                h = hours * weights[p.product_id] / total_weight
                effective[p.product_id] += h * proficiency_bonus(prof.get(p.product_id, 0.0))

    supplies = []
    for p in products:
        item = state.inventory.item(p.product_id)
        inventory = int(item.quantity) if item else 0
        make_h = p.make_time / 3600
        capacity = effective[p.product_id] / make_h if make_h > 0 else 0.0
        final = min(inventory, int(round(capacity)))
        if inventory < capacity * 0.9:
            bottleneck = "inventory"
        elif capacity < inventory * 0.9:
            bottleneck = "capacity"
        else:
            bottleneck = "none"
        supplies.append(
            ProductSupplyBreakdown(
                product_id=p.product_id,
                product_name=p.name,
                inventory_quantity=inventory,
                production_capacity=int(round(capacity)),
                final_supply=final,
                bottleneck=bottleneck,
            )
        )

    active = [s for s in state.staff if not s.is_onboarding]
    return SupplyBreakdown(
        staff_count=len(active),
        total_work_hours=float(sum(s.weekly_hours for s in active)),
        avg_efficiency=sum(s.efficiency for s in active) / len(active) if active else 0.0,
        product_supplies=supplies,
        total_supply=sum(ps.final_supply for ps in supplies),
    )
