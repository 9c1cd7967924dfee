from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from storesim.actions import (
    Action,
    AddStaff,
    AssignStaffTask,
    OpenStore,
    SelectAddress,
    SelectBrand,
    SelectDecoration,
    SelectLocation,
    ToggleProduct,
    dispatch,
)
from storesim.engine import create_initial_state
from storesim.models import GameState


class ScenarioSetupError(RuntimeError):
    pass


@dataclass(frozen=True)
class SetupBlueprint:
    """A runnable opening: everything the setup phase needs before open_store."""

    scenario_id: str
    name: str
    description: str
    brand_id: str
    location_id: str
    address_id: str
    decoration_id: str
    product_ids: Tuple[str, ...]
    staff: Tuple[Tuple[str, Optional[str]], ...]  # (staff_type_id, task)
    season: Optional[str] = "spring"

    def setup_actions(self) -> List[Tuple[str, Action]]:
        """Setup steps up to hiring; task assignment and opening follow."""

        out: List[Tuple[str, Action]] = [
            ("brand", SelectBrand(self.brand_id)),
            ("location", SelectLocation(self.location_id)),
            ("address", SelectAddress(self.address_id)),
            ("decoration", SelectDecoration(self.decoration_id)),
        ]
        out += [(f"product {pid}", ToggleProduct(pid)) for pid in self.product_ids]
        out += [(f"staff {tid}", AddStaff(tid)) for tid, _ in self.staff]
        return out


SCENARIOS: Dict[str, SetupBlueprint] = {
    b.scenario_id: b
    for b in [
        SetupBlueprint(
            "indie_school_drinks",
            "独立饮品店·学校食堂旁",
            "低投入独立品牌，学生客群，饮品+小吃。",
            "independent", "school", "school_canteen", "modern",
            ("milktea", "fruittea", "fries"),
            (("fulltime", "chef"), ("fulltime", "waiter"), ("parttime", "waiter")),
        ),
        SetupBlueprint(
            "mixue_community",
            "蜜雪冰城·小区门口",
            "成熟加盟饮品品牌，居民区客群。",
            "mixue", "community", "community_entrance", "modern",
            ("milktea", "fruittea", "coffee"),
            (("fulltime", "chef"), ("fulltime", "waiter"), ("parttime", "waiter")),
        ),
        SetupBlueprint(
            "tastien_office",
            "塔斯汀·写字楼地下一层",
            "加盟快餐，写字楼午餐客群，后厨压力大。",
            "tastien", "office", "office_b1", "industrial",
            ("burger", "fries", "dessert"),
            (("chef", "chef"), ("chef", "chef"), ("fulltime", "waiter"), ("parttime", "cleaner")),
            season="autumn",
        ),
        SetupBlueprint(
            "indie_business_meal",
            "独立餐饮·步行街",
            "独立品牌正餐+饮品，商业街混合客群。",
            "independent", "business", "business_street", "cozy",
            ("noodles", "ricebox", "bbq", "milktea"),
            (("chef", "chef"), ("fulltime", "chef"), ("fulltime", "waiter"), ("senior", "waiter")),
            season="summer",
        ),
        SetupBlueprint(
            "risk_high_cost",
            "高风险探针·快招品牌景区大门",
            "快招品牌+高档装修+高租金地址，预期难以盈利。",
            "nezha", "tourist", "tourist_gate", "premium",
            ("milktea", "fruittea", "dessert"),
            (("fulltime", "chef"), ("fulltime", "waiter"), ("senior", "waiter"), ("parttime", "marketer")),
            season="winter",
        ),
    ]
}


def build_initial_state(blueprint: SetupBlueprint, seed: int) -> GameState:
    """Run the blueprint's setup actions on a fresh game and open the store."""

    rng = random.Random(seed)
    state = create_initial_state()

    def step(context: str, action: Action) -> None:
        nonlocal state
        result = dispatch(state, action, rng)
        if not result.changed:
            raise ScenarioSetupError(f"Setup failed ({context}): {result.error}")
        state = result.state

    for context, action in blueprint.setup_actions():
        step(context, action)
    for member, (_, task) in zip(list(state.staff), blueprint.staff):
        if task and member.assigned_task != task:
            step(f"task {member.staff_id}", AssignStaffTask(member.staff_id, task))
    step("open", OpenStore(blueprint.season))
    return state
