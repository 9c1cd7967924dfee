from __future__ import annotations

from dataclasses import asdict

from storesim.delivery import platform_shares
from storesim.demand import absolute_price_effect, calculate_demand, substitution_pressure, weighted_competitors
from storesim.models import ActivePlatform, GameState
from storesim.presets import SCENARIOS, build_initial_state
from storesim.rings import assign_shops_to_rings
from storesim.settlement import allocate, calculate_supply_demand


def _assert(cond: bool, msg: str) -> None:
    if not cond:
        raise AssertionError(msg)


def _opened(scenario_id: str = "mixue_community", seed: int = 11) -> GameState:
    return build_initial_state(SCENARIOS[scenario_id], seed)


def _with_platforms(s: GameState) -> GameState:
    s = s.clone()
    s.delivery.platforms = [
        ActivePlatform(platform_id="meituan", active_weeks=3, platform_exposure=30.0),
        ActivePlatform(platform_id="eleme", active_weeks=3, platform_exposure=10.0),
    ]
    s.delivery.recompute_total()
    return s


def test_allocation_policies() -> None:
    _assert(allocate("dine_in_first", 80, 40, 100) == (80, 20), "dine-in first should serve dine-in fully")
    _assert(allocate("delivery_first", 80, 40, 100) == (60, 40), "delivery first should serve delivery fully")
    _assert(allocate("proportional", 80, 40, 100) == (67, 33), "proportional should split by demand share")
    _assert(allocate("proportional", 30, 20, 100) == (30, 20), "enough supply serves everyone")
    _assert(allocate("delivery_first", 50, 0, 30) == (30, 0), "no delivery demand means dine-in only")
    for policy in ("dine_in_first", "delivery_first", "proportional"):
        d, v = allocate(policy, 70, 55, 90)
        _assert(d + v <= 90, f"{policy}: sales must not exceed supply")
        _assert(d <= 70 and v <= 55, f"{policy}: sales must not exceed demand")


def test_platform_share_split() -> None:
    shares = platform_shares(_with_platforms(_opened()).delivery.platforms)
    by_id = {ap.platform_id: share for ap, share in shares}
    _assert(abs(by_id["meituan"] - 0.75) < 1e-9, f"meituan share should be 0.75, got {by_id}")
    _assert(abs(by_id["eleme"] - 0.25) < 1e-9, f"eleme share should be 0.25, got {by_id}")

    weak = [ActivePlatform(platform_id="meituan", platform_exposure=0.0), ActivePlatform(platform_id="eleme", platform_exposure=3.0)]
    by_id = {ap.platform_id: share for ap, share in platform_shares(weak)}
    _assert(abs(by_id["meituan"] - 0.25) < 1e-9, "a zero-weight platform still counts as 1")


def test_settlement_conservation() -> None:
    for s in (_opened(), _with_platforms(_opened())):
        sd = calculate_supply_demand(s)
        _assert(len(sd.product_sales) == len(s.product_ids), "one sale row per selected product")
        for ps in sd.product_sales:
            _assert(ps.actual_sales <= ps.demand, f"{ps.product_id}: sales exceed demand")
            _assert(ps.actual_sales <= ps.supply, f"{ps.product_id}: sales exceed supply")
            _assert(ps.dine_in_sales + ps.delivery_sales == ps.actual_sales, f"{ps.product_id}: channel split mismatch")
            _assert(ps.dine_in_demand + ps.delivery_demand == ps.demand, f"{ps.product_id}: demand split mismatch")
            _assert(abs(ps.revenue - ps.dine_in_revenue - ps.delivery_revenue) < 1e-6, f"{ps.product_id}: revenue split mismatch")
        _assert(sd.total_sales == sum(ps.actual_sales for ps in sd.product_sales), "total_sales must equal the detail sum")
        _assert(abs(sd.total_revenue - sum(ps.revenue for ps in sd.product_sales)) < 1e-6, "total_revenue must equal the detail sum")
        _assert(sd.total_sales <= sd.total_demand, "total sales must not exceed total demand")
        _assert(0.0 <= sd.fulfillment_rate <= 1.0, "fulfillment rate must be within [0, 1]")


def test_platform_settlement_follows_shares() -> None:
    sd = calculate_supply_demand(_with_platforms(_opened()))
    _assert(len(sd.platform_settlements) == 2, "one settlement per joined platform")
    total_orders = sum(st.orders for st in sd.platform_settlements)
    _assert(abs(total_orders - sd.delivery_sales) < 1e-6, "platform orders must add up to delivery sales")
    if sd.delivery_sales > 0:
        meituan = next(st for st in sd.platform_settlements if st.platform_id == "meituan")
        _assert(abs(meituan.orders / total_orders - 0.75) < 1e-9, "meituan should take 75% of delivery orders")
        _assert(meituan.commission > 0, "commission should be charged on platform revenue")


def test_settlement_is_pure() -> None:
    s = _with_platforms(_opened())
    before = asdict(s)
    a = calculate_supply_demand(s)
    b = calculate_supply_demand(s)
    _assert(asdict(s) == before, "settlement must not mutate the state")
    _assert(asdict(a) == asdict(b), "settlement must be a pure function of the state")


def test_supply_priority_changes_channel_split() -> None:
    base = _with_platforms(_opened())
    results = {}
    for policy in ("dine_in_first", "delivery_first", "proportional"):
        s = base.clone()
        s.supply_priority = policy
        sd = calculate_supply_demand(s)
        _assert(sd.supply_priority == policy, "settlement should report the policy it used")
        results[policy] = sd
    totals = {k: v.total_sales for k, v in results.items()}
    _assert(abs(totals["dine_in_first"] - totals["delivery_first"]) <= len(base.product_ids), "policy only moves sales between channels")
    _assert(results["delivery_first"].delivery_sales >= results["dine_in_first"].delivery_sales, "delivery first never serves less delivery")


def test_delivery_first_when_both_channels_exceed_supply() -> None:
    _assert(allocate("delivery_first", 150, 120, 100) == (0, 100), "delivery takes all supply before dine-in")
    _assert(allocate("dine_in_first", 150, 120, 100) == (100, 0), "dine-in takes all supply before delivery")


def _without_competitors(s: GameState) -> GameState:
    s = s.clone()
    s.nearby_shops = []
    s.consumer_rings = assign_shops_to_rings(s.base_consumer_rings or s.consumer_rings, [])
    for p in s.products():
        s.product_prices[p.product_id] = p.reference_price
    return s


def test_zero_competitors_at_reference_price() -> None:
    s = _without_competitors(_opened())
    bd = calculate_demand(s)
    _assert("competition" not in bd.modifiers, f"competition must not be an additive modifier: {sorted(bd.modifiers)}")
    for p in s.products():
        _assert(absolute_price_effect(s.price_of(p), p.reference_price) == 1.0, f"{p.product_id}: reference price has no price effect")
    for ring in s.consumer_rings:
        competitors = weighted_competitors(s, ring.ring_id)
        _assert(competitors == [], f"{ring.ring_id}: no shops means no competitors")
        _assert(substitution_pressure(competitors, "drink") == 0.0, "no competitors means no substitution")
    _assert(bd.total_demand > 0, "an uncontested store still has demand")


def main() -> None:
    tests = [
        test_allocation_policies,
        test_platform_share_split,
        test_settlement_conservation,
        test_platform_settlement_follows_shares,
        test_settlement_is_pure,
        test_supply_priority_changes_channel_split,
        test_delivery_first_when_both_channels_exceed_supply,
        test_zero_competitors_at_reference_price,
    ]
    for t in tests:
        t()
        print(f"OK  {t.__name__}")
    print(f"ALL OK ({len(tests)} tests)")


if __name__ == "__main__":
    main()
