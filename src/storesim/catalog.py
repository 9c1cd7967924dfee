from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


CUSTOMER_TYPES: Tuple[str, ...] = ("students", "office", "family", "tourist")
PRODUCT_CATEGORIES: Tuple[str, ...] = ("drink", "food", "snack", "meal")
RING_IDS: Tuple[str, ...] = ("ring0", "ring1", "ring2", "ring3")
SEASONS: Tuple[str, ...] = ("spring", "summer", "autumn", "winter")


def _ct(students: float, office: float, family: float, tourist: float) -> Dict[str, float]:
    return {"students": students, "office": office, "family": family, "tourist": tourist}


def _cat(drink: float, food: float, snack: float, meal: float) -> Dict[str, float]:
    return {"drink": drink, "food": food, "snack": snack, "meal": meal}


# ---------------------------------------------------------------------------
# Products / locations / decorations
# ---------------------------------------------------------------------------


@dataclass
class Product:
    product_id: str
    name: str
    category: str  # drink|food|snack|meal
    sub_type: str  # cold_drink|hot_drink|main_food|snack|dessert
    base_cost: float
    base_price: float
    reference_price: float
    make_time: float  # seconds per unit
    storage: str  # normal|refrigerated|frozen
    appeal: Dict[str, float] = field(default_factory=dict)


@dataclass
class Address:
    address_id: str
    name: str
    area: float
    traffic_modifier: float
    rent_modifier: float


@dataclass
class Location:
    location_id: str
    name: str
    foot_traffic: Dict[str, float]
    rent_per_sqm: float
    wage_level: float
    addresses: List[Address] = field(default_factory=list)

    def address(self, address_id: str) -> Optional[Address]:
        for a in self.addresses:
            if a.address_id == address_id:
                return a
        return None


@dataclass
class Decoration:
    decoration_id: str
    name: str
    level: int
    cost_per_sqm: float
    appeal_bonus: Dict[str, float] = field(default_factory=dict)
    category_bonus: Dict[str, float] = field(default_factory=dict)


PRODUCTS: Dict[str, Product] = {
    p.product_id: p
    for p in [
        Product("milktea", "奶茶", "drink", "cold_drink", 5, 12, 15, 75, "refrigerated", _ct(90, 70, 50, 60)),
        Product("coffee", "咖啡", "drink", "hot_drink", 7, 18, 22, 110, "normal", _ct(50, 95, 40, 70)),
        Product("fruittea", "果茶", "drink", "cold_drink", 6, 15, 18, 90, "refrigerated", _ct(80, 60, 70, 75)),
        Product("burger", "汉堡", "meal", "main_food", 12, 25, 30, 110, "refrigerated", _ct(85, 75, 60, 70)),
        Product("ricebox", "盒饭", "meal", "main_food", 14, 28, 32, 180, "refrigerated", _ct(70, 85, 50, 40)),
        Product("noodles", "面条", "meal", "main_food", 8, 18, 22, 150, "normal", _ct(75, 70, 65, 55)),
        Product("bbq", "烤串", "food", "snack", 7, 15, 18, 180, "frozen", _ct(80, 65, 40, 60)),
        Product("fries", "薯条", "snack", "snack", 4, 10, 12, 110, "frozen", _ct(90, 50, 75, 65)),
        Product("dessert", "甜品", "snack", "dessert", 9, 22, 26, 40, "refrigerated", _ct(85, 70, 80, 75)),
        Product("bread", "烘焙", "snack", "snack", 7, 15, 18, 75, "normal", _ct(70, 80, 75, 60)),
    ]
}


LOCATIONS: Dict[str, Location] = {
    loc.location_id: loc
    for loc in [
        Location(
            "school", "学校周边", _ct(2600, 500, 360, 120), 80, 0.8,
            [
                Address("school_gate", "校门口", 25, 1.3, 1.4),
                Address("school_canteen", "食堂旁", 15, 1.1, 0.9),
                Address("school_back", "后街", 60, 0.7, 0.6),
            ],
        ),
        Location(
            "office", "写字楼区", _ct(310, 3500, 250, 250), 150, 1.2,
            [
                Address("office_lobby", "大堂", 45, 1.2, 1.3),
                Address("office_b1", "地下一层", 30, 1.0, 0.85),
                Address("office_street", "临街", 80, 0.8, 0.7),
            ],
        ),
        Location(
            "community", "居民区", _ct(800, 680, 2700, 120), 60, 0.9,
            [
                Address("community_entrance", "小区门口", 35, 1.2, 1.1),
                Address("community_market", "菜市场旁", 20, 1.0, 0.8),
                Address("community_park", "公园边", 50, 0.9, 0.75),
            ],
        ),
        Location(
            "business", "商业街区", _ct(1430, 1750, 1430, 1170), 200, 1.0,
            [
                Address("business_mall", "商场内", 55, 1.3, 1.5),
                Address("business_street", "步行街", 40, 1.1, 1.2),
                Address("business_corner", "街角", 70, 0.85, 0.9),
            ],
        ),
        Location(
            "tourist", "景区周边", _ct(420, 220, 910, 3640), 180, 1.1,
            [
                Address("tourist_gate", "景区大门", 30, 1.4, 1.6),
                Address("tourist_inside", "景区内", 25, 1.2, 1.3),
                Address("tourist_parking", "停车场", 65, 0.75, 0.7),
            ],
        ),
    ]
}


DECORATIONS: Dict[str, Decoration] = {
    d.decoration_id: d
    for d in [
        Decoration("simple", "简约", 1, 500, _ct(5, 5, 5, 5), _cat(0, 0, 0, 0)),
        Decoration("modern", "现代", 2, 1200, _ct(15, 20, 10, 15), _cat(10, 5, 10, 5)),
        Decoration("cozy", "温馨", 3, 1800, _ct(10, 15, 25, 20), _cat(15, 10, 15, 10)),
        Decoration("industrial", "工业风", 3, 1500, _ct(25, 20, 5, 25), _cat(15, 5, 10, 10)),
        Decoration("premium", "高档", 4, 3000, _ct(15, 30, 25, 30), _cat(20, 20, 20, 20)),
        Decoration("luxury", "奢华", 5, 5000, _ct(20, 35, 30, 40), _cat(25, 25, 25, 25)),
    ]
}


# ---------------------------------------------------------------------------
# Staff
# ---------------------------------------------------------------------------


@dataclass
class StaffType:
    type_id: str
    name: str
    base_salary: float
    efficiency: float
    service_quality: float
    handles: List[str]
    max_skill: int
    tasks: List[str]
    hourly_rate: float = 0.0  # >0 means hourly pay


@dataclass
class TaskDefinition:
    task_id: str
    name: str
    production: float
    service: float
    exposure_boost_rate: float = 0.0
    cleanliness_rate: float = 0.0


_ALL_CATS = ["drink", "food", "snack", "meal"]

STAFF_TYPES: Dict[str, StaffType] = {
    t.type_id: t
    for t in [
        StaffType("parttime", "兼职", 3000, 0.7, 0.6, ["drink", "snack"], 2, ["waiter", "cleaner", "marketer"], hourly_rate=18),
        StaffType("fulltime", "全职", 5000, 1.0, 0.8, list(_ALL_CATS), 3, ["waiter", "chef", "marketer", "cleaner"]),
        StaffType("senior", "资深", 7000, 1.3, 1.0, list(_ALL_CATS), 4, ["waiter", "chef", "marketer", "cleaner", "manager"]),
        StaffType("chef", "厨师", 8000, 1.2, 1.1, ["food", "meal"], 5, ["chef", "manager"]),
    ]
}

TASKS: Dict[str, TaskDefinition] = {
    t.task_id: t
    for t in [
        TaskDefinition("chef", "后厨", 1.3, 0.0),
        TaskDefinition("waiter", "前台/服务", 0.3, 1.0),
        TaskDefinition("marketer", "营销", 0.0, 0.0, exposure_boost_rate=2.5),
        TaskDefinition("cleaner", "勤杂", 0.0, 0.4, cleanliness_rate=8.0),
        TaskDefinition("manager", "店长", 0.3, 0.5),
    ]
}

SERVICE_TASKS = ("waiter", "cleaner", "manager")
STAFF_NAMES = ["小王", "小李", "小张", "小刘", "小陈", "小杨", "小赵", "小周"]
MAX_SETUP_STAFF = 8

TASK_EXP_COEF = {"chef": 1.0, "waiter": 1.0, "marketer": 0.9, "cleaner": 0.7, "manager": 1.2}
TASK_FATIGUE_BASE = {"chef": 10, "waiter": 8, "marketer": 7, "cleaner": 8, "manager": 5}
SKILL_UPGRADE_EXP = {1: 80, 2: 160, 3: 320, 4: 640}

MIN_WORK_DAYS, MAX_WORK_DAYS = 5, 7
MIN_WORK_HOURS, MAX_WORK_HOURS = 4, 12

FIRE_MORALE_PENALTY = -8
FIRE_TENURE_PENALTY = -4
FIRE_SKILL_PENALTY = -3

# (threshold, efficiency_mod, service_mod); first morale >= threshold wins
MORALE_EFFECTS = [(80, 1.2, 1.15), (60, 1.0, 1.0), (40, 0.9, 0.9), (20, 0.75, 0.8), (0, 0.6, 0.65)]
# (upper bound, efficiency_penalty, service_penalty, quit_risk); first fatigue <= bound wins
FATIGUE_EFFECTS = [(30, 1.0, 1.0, 0.0), (50, 0.95, 0.95, 0.0), (70, 0.85, 0.85, 0.05), (90, 0.7, 0.7, 0.15), (100, 0.5, 0.5, 0.3)]

TRANSITION_WEEKS = 1
TRANSITION_PENALTY = 0.5
TRANSITION_RETAIN = 0.3
TRANSITION_RETURN_RETAIN = 0.5


def skill_upgrade_requirement(level: int) -> float:
    return float(SKILL_UPGRADE_EXP.get(level, math.inf))


def morale_effect(morale: float) -> Tuple[float, float]:
    for threshold, eff, svc in MORALE_EFFECTS:
        if morale >= threshold:
            return eff, svc
    return MORALE_EFFECTS[-1][1], MORALE_EFFECTS[-1][2]


def fatigue_effect(fatigue: float) -> Tuple[float, float, float]:
    for bound, eff, svc, quit_risk in FATIGUE_EFFECTS:
        if fatigue <= bound:
            return eff, svc, quit_risk
    return FATIGUE_EFFECTS[-1][1], FATIGUE_EFFECTS[-1][2], FATIGUE_EFFECTS[-1][3]


# ---------------------------------------------------------------------------
# Staff management
# ---------------------------------------------------------------------------


@dataclass
class RecruitmentChannel:
    channel_id: str
    name: str
    cost: float
    skill_range: Tuple[int, int]


RECRUITMENT_CHANNELS: Dict[str, RecruitmentChannel] = {
    c.channel_id: c
    for c in [
        RecruitmentChannel("walk_in", "店门招聘", 0, (1, 2)),
        RecruitmentChannel("online_post", "网络招聘", 200, (1, 2)),
        RecruitmentChannel("referral", "员工推荐", 500, (2, 3)),
        RecruitmentChannel("agency", "中介招聘", 1000, (3, 4)),
    ]
}
ONBOARDING_WEEKS = 1

SALARY_MIN_LEVEL = 2
SALARY_MIN_RATIO = 0.8  # × base salary × wage level
SALARY_MAX_RATIO = 2.0
SALARY_RAISE_COEF = 15
SALARY_RAISE_MAX_BOOST = 20
SALARY_RAISE_BOOST_DECAY = 4
SALARY_CUT_COEF = 25
SALARY_CUT_QUIT_CHANCE = 0.3

MORALE_ACTION_MIN_LEVEL = 1
BONUS_AMOUNTS = (500, 1000, 2000)
BONUS_MORALE = (15, 22, 30)
BONUS_OTHERS_MORALE = 3
BONUS_COOLDOWN_WEEKS = 4
TEAM_MEAL_COST_PER_PERSON = 200
TEAM_MEAL_MORALE = 8
TEAM_MEAL_FATIGUE = 5
TEAM_MEAL_COOLDOWN_WEEKS = 4
DAY_OFF_FATIGUE = 15
DAY_OFF_MORALE = 5
DAY_OFF_COOLDOWN_WEEKS = 2
MORALE_ACTIONS = ("bonus", "team_meal", "day_off")


@dataclass
class RetentionMethod:
    method_id: str
    success_rate: float
    morale_boost: float = 0.0
    salary_increase: float = 0.0
    cost_ratio: float = 0.0  # × monthly salary, paid whether or not it works
    target_days: int = 0
    target_hours: int = 0
    fatigue_reduction: float = 0.0


RETENTION_MIN_LEVEL = 2
RETENTION_METHODS: Dict[str, RetentionMethod] = {
    m.method_id: m
    for m in [
        RetentionMethod("raise", 0.8, morale_boost=15, salary_increase=0.2),
        RetentionMethod("reduce_hours", 0.6, target_days=5, target_hours=8, fatigue_reduction=20),
        RetentionMethod("bonus", 0.7, morale_boost=20, cost_ratio=0.5),
    ]
}


# ---------------------------------------------------------------------------
# Brands
# ---------------------------------------------------------------------------


@dataclass
class Brand:
    brand_id: str
    name: str
    brand_type: str  # franchise|independent
    franchise_fee: float
    royalty_rate: float
    initial_reputation: float
    supply_cost_modifier: float
    traffic_multiplier: float
    allowed_categories: Optional[List[str]] = None  # None = any
    is_quick_franchise: bool = False
    conversion_bonus: float = 0.0


BRANDS: Dict[str, Brand] = {
    b.brand_id: b
    for b in [
        Brand("independent", "独立品牌", "independent", 0, 0.0, 50, 1.0, 1.0),
        Brand("mixue", "蜜雪冰城", "franchise", 150000, 0.05, 90, 0.88, 1.40, ["drink"]),
        Brand("luckin", "瑞幸咖啡", "franchise", 150000, 0.05, 85, 0.85, 1.45, ["drink"]),
        Brand("chabaidao", "茶百道", "franchise", 160000, 0.05, 78, 0.9, 1.30, ["drink"]),
        Brand("tastien", "塔斯汀", "franchise", 130000, 0.05, 73, 0.87, 1.35, ["meal", "snack"]),
        Brand("nezha", "哪吒仙饮", "franchise", 158000, 0.10, 30, 1.8, 0.8, None, is_quick_franchise=True),
        Brand("hamburg4", "燃熊中国汉堡", "franchise", 168000, 0.09, 28, 1.7, 0.8, None, is_quick_franchise=True),
        Brand("koreacoffee", "清潭洞咖啡", "franchise", 450000, 0.1, 40, 1.8, 0.8, None, is_quick_franchise=True),
        Brand("yogurt", "茉酸奶", "franchise", 120000, 0.06, 58, 1.15, 1.50),
    ]
}

QUICK_FRANCHISE_HONEYMOON_WEEKS = 8
QUICK_FRANCHISE_FAKE_REPUTATION = 3.0


def effective_supply_cost_modifier(brand: Optional[Brand], week: int) -> float:
    if brand is None:
        return 1.0
    if brand.is_quick_franchise and week <= QUICK_FRANCHISE_HONEYMOON_WEEKS:
        return 1.0
    return brand.supply_cost_modifier


# ---------------------------------------------------------------------------
# Game constants
# ---------------------------------------------------------------------------

INITIAL_CASH = 400000.0
TOTAL_WEEKS = 52
WIN_STREAK = 6
WIN_EXPOSURE = 35
WIN_REPUTATION = 55
MIN_OPERATING_CASH = -5000.0

CONVERSION_RATE = 0.065
WEEKLY_MARKETING_COST = 800 / 4
WEEKLY_DEPRECIATION = 400 / 4
AREA_PER_KITCHEN_STATION = 10

LICENSE_COST = 5000
EQUIPMENT_COST = 18000
FIRST_BATCH_COST = 8000
RENT_DEPOSIT_MONTHS = 2
RENT_PREPAID_MONTHS = 1

PRODUCT_ADD_COST = 500
PRODUCT_ADD_UNITS = 75
MAX_PRODUCTS = 5
MAX_WEEKLY_PRODUCT_CHANGES = 2

SEASON_MODIFIER = {"spring": 0.90, "summer": 1.25, "autumn": 1.05, "winter": 0.85}
SEASON_START_MONTH = {"spring": 4, "summer": 7, "autumn": 10, "winter": 1}
TOURIST_RENT_MODIFIER = {"summer": 1.0, "winter": 0.75}

EVENT_PROBABILITY = 0.12


@dataclass
class GameEvent:
    event_id: str
    name: str
    effect_type: str  # revenue|reputation|cost
    value: float


GAME_EVENTS: List[GameEvent] = [
    GameEvent("weather_good", "天气晴朗", "revenue", 0.2),
    GameEvent("weather_bad", "连续阴雨", "revenue", -0.3),
    GameEvent("viral_video", "视频爆火", "reputation", 20),
    GameEvent("food_safety", "食品安全检查", "cost", 5000),
    GameEvent("equipment_break", "设备故障", "cost", 3000),
]


# ---------------------------------------------------------------------------
# Boss weekly actions
# ---------------------------------------------------------------------------


@dataclass
class BossAction:
    action_id: str
    name: str
    cost: float  # charged by the weekly tick
    exp_range: Tuple[int, int]
    min_cognition: int


BOSS_ACTIONS: Dict[str, BossAction] = {
    b.action_id: b
    for b in [
        BossAction("work_in_store", "亲自坐镇", 0, (5, 5), 0),
        BossAction("supervise", "巡店督导", 0, (8, 8), 0),
        BossAction("investigate_nearby", "周边考察", 200, (25, 35), 0),
        BossAction("count_traffic", "蹲点数人头", 0, (15, 20), 0),
        BossAction("industry_dinner", "同行饭局", 500, (30, 40), 1),
    ]
}
DEFAULT_BOSS_ACTION = "supervise"
BOSS_WORK_ROLES = ("chef", "waiter", "cleaner")
BOSS_WORK_HOURS = 60
BOSS_WORK_EFFICIENCY = 0.70
SUPERVISE_MORALE = 3
SUPERVISE_EFFICIENCY = 0.08
COUNT_TRAFFIC_STREAK_WEEKS = 2
COUNT_TRAFFIC_STREAK_EXP = 20
BOSS_HISTORY_CAP = 30

INVESTIGATION_ACCURACY = {0: 0.45, 1: 0.55, 2: 0.65, 3: 0.78, 4: 0.88, 5: 0.95}
INVESTIGATION_DIMENSIONS = ("traffic", "price", "category", "decoration", "staff_count")
DINNER_RELIABILITY = {0: 0.40, 1: 0.50, 2: 0.60, 3: 0.75, 4: 0.85, 5: 0.95}
DINNER_BUFF_CHANCE = 0.12
DINNER_BUFF_VALUE = 0.05
DINNER_BUFF_WEEKS = 4

# (topic, content); only accurate "supply" talk can land a supplier discount
DINNER_INSIGHTS_ACCURATE = [
    ("market", "听说最近{category}品类竞争加剧，新店开了好几家"),
    ("supply", "有个老板说他家用的供应商比市场价便宜10%，在城东批发市场"),
    ("demand", "这片区周末客流比工作日多40%左右，得备足周末的货"),
    ("delivery", "隔壁街那家店上了外卖后营业额涨了30%"),
    ("staff", "现在招人不好招，得把薪资开到行业均价以上才行"),
    ("marketing", "做营销别光发传单，线上种草效果好很多"),
]
DINNER_INSIGHTS_INACCURATE = [
    ("market", "听说这片区马上要拆迁，客流会暴涨"),
    ("supply", "有人推荐了个供应商，说能便宜30%，质量一样好"),
    ("demand", "据说周边要开个大商场，以后客流翻倍"),
    ("delivery", "外卖不赚钱的，抽成太高了，别做"),
    ("staff", "员工嘛，给最低工资就行，反正都是临时工"),
    ("marketing", "现在做生意不用营销，酒香不怕巷子深"),
]
CATEGORY_NAMES = {"drink": "饮品", "food": "快餐", "snack": "小吃", "meal": "正餐", "grocery": "便利", "service": "服务"}


# ---------------------------------------------------------------------------
# Interactive events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StaffEffect:
    selector: str  # highest_skill|lowest_morale|highest_fatigue|random|by_task
    task_filter: Optional[str] = None
    morale: float = 0.0
    fatigue: float = 0.0
    salary: float = 0.0
    wants_to_quit: Optional[bool] = None
    remove: bool = False


@dataclass(frozen=True)
class BuffSpec:
    buff_type: str  # revenue_multiplier|cost_multiplier|reputation_weekly|exposure_weekly
    value: float
    duration_weeks: int
    source: str


@dataclass(frozen=True)
class DelayedSpec:
    delay_weeks: int
    effects: EventEffects
    description: str


@dataclass(frozen=True)
class ChainSpec:
    event_id: str
    probability: float
    delay_weeks: int


@dataclass(frozen=True)
class EventEffects:
    cash: float = 0.0
    reputation: float = 0.0
    exposure: float = 0.0
    cleanliness: float = 0.0
    morale: float = 0.0
    cognition_exp: float = 0.0
    target_staff: Optional[StaffEffect] = None
    buffs: Tuple[BuffSpec, ...] = ()
    delayed: Tuple[DelayedSpec, ...] = ()
    chain: Optional[ChainSpec] = None


@dataclass(frozen=True)
class EventOption:
    option_id: str
    text: str
    effects: EventEffects


@dataclass(frozen=True)
class InteractiveEvent:
    """An operating-phase event the player must answer. Events with no options are
    notifications, answered with NOTIFICATION_OPTION."""

    event_id: str
    name: str
    description: str
    min_week: int
    probability: float  # 0 means chain-only
    context_check: Optional[str] = None
    max_week: Optional[int] = None
    options: Tuple[EventOption, ...] = ()
    notification_effects: Optional[EventEffects] = None

    def option(self, option_id: str) -> Optional[EventOption]:
        for o in self.options:
            if o.option_id == option_id:
                return o
        return None


NOTIFICATION_OPTION = "acknowledge"
EVENT_GUARANTEE_WEEK = 5

_EVENT_LIST: List[InteractiveEvent] = [
    InteractiveEvent(
        "footbasin_juice", "后厨卫生危机", "有顾客拍到后厨用塑料洗脚盆装水果，视频在本地群疯传。",
        min_week=3, probability=0.35, context_check="cleanliness_low",
        options=(
            EventOption("apologize_fix", "立即道歉 + 全面整改卫生", EventEffects(
                cash=-5000, reputation=-10, cleanliness=20, cognition_exp=15,
                buffs=(BuffSpec("reputation_weekly", 3, 3, "卫生整改后口碑逐步恢复"),),
            )),
            EventOption("ignore_deny", "装作没看见，等热度过去", EventEffects(
                reputation=-15, exposure=-10, cognition_exp=5,
                buffs=(
                    BuffSpec("reputation_weekly", -5, 4, "视频持续传播"),
                    BuffSpec("exposure_weekly", -3, 4, "负面舆情扩散"),
                ),
            )),
            EventOption("blame_employee", "甩锅给员工，开除当事人", EventEffects(
                reputation=-20, morale=-15, cognition_exp=8,
                target_staff=StaffEffect("by_task", task_filter="chef", remove=True),
                chain=ChainSpec("food_poisoning", 0.3, 3),
            )),
        ),
    ),
    InteractiveEvent(
        "staff_salary_demand", "核心员工要求加薪", "核心员工说隔壁店开出了更高的工资，希望你能涨薪。",
        min_week=4, probability=0.45, context_check="high_skill_staff",
        options=(
            EventOption("agree_raise", "同意加薪，留住人才", EventEffects(
                cognition_exp=12, target_staff=StaffEffect("highest_skill", salary=500, morale=20),
            )),
            EventOption("negotiate", "谈谈，承诺下季度涨", EventEffects(
                cognition_exp=8, target_staff=StaffEffect("highest_skill", morale=-5),
                delayed=(DelayedSpec(4, EventEffects(morale=-10), "承诺的加薪迟迟没兑现，核心员工开始消极怠工"),),
            )),
            EventOption("refuse", "拒绝，爱干干不干走", EventEffects(
                cognition_exp=5, target_staff=StaffEffect("highest_skill", wants_to_quit=True, morale=-30),
            )),
        ),
    ),
    InteractiveEvent(
        "supplier_price_hike", "供应商突然涨价", "主要食材供应商通知你：下周起原材料涨价15%。",
        min_week=4, probability=0.40, context_check="low_margin",
        options=(
            EventOption("accept_hike", "接受涨价，先稳住供应", EventEffects(
                cognition_exp=10, buffs=(BuffSpec("cost_multiplier", 0.15, 6, "原材料成本上升15%"),),
            )),
            EventOption("find_new_supplier", "花时间找新供应商", EventEffects(
                cash=-2000, cognition_exp=18,
                buffs=(BuffSpec("cost_multiplier", 0.10, 3, "寻找新供应商期间成本略升"),),
                delayed=(DelayedSpec(3, EventEffects(reputation=-3), "新供应商磨合期，食材品质略有波动"),),
            )),
            EventOption("negotiate_hard", "强硬谈判，威胁换人", EventEffects(
                cognition_exp=15, buffs=(BuffSpec("cost_multiplier", 0.08, 4, "谈判后供应商小幅涨价8%"),),
            )),
        ),
    ),
    InteractiveEvent(
        "landlord_pressure", "房东要涨房租", "房东说合同快到期了，下个月起要涨租。",
        min_week=8, probability=0.45, context_check="deep_loss",
        options=(
            EventOption("negotiate_rent", "跟房东谈，争取少涨点", EventEffects(
                cognition_exp=20, buffs=(BuffSpec("cost_multiplier", 0.05, 8, "房租小幅上涨"),),
            )),
            EventOption("accept_rent", "认了，搬家成本更高", EventEffects(
                cognition_exp=10, buffs=(BuffSpec("cost_multiplier", 0.12, 12, "房租大幅上涨"),),
            )),
            EventOption("threaten_leave", "威胁搬走，看谁怕谁", EventEffects(
                cognition_exp=8, buffs=(BuffSpec("cost_multiplier", 0.15, 10, "谈崩后房东强硬涨租"),),
            )),
        ),
    ),
    InteractiveEvent(
        "influencer_scam", "达人推广效果存疑", "花钱请的本地美食达人视频播放量只有200，评论也不太真实。",
        min_week=2, probability=0.55, context_check="has_social_media_marketing",
        options=(
            EventOption("learn_lesson", "吃一堑长一智", EventEffects(
                cash=-3000, cognition_exp=20, buffs=(BuffSpec("exposure_weekly", -2, 2, "假达人视频被识破"),),
            )),
            EventOption("demand_refund", "找达人要求退款", EventEffects(
                cash=-1500, cognition_exp=12, chain=ChainSpec("influencer_refund_success", 0.35, 2),
            )),
            EventOption("hire_more", "再找几个达人试试", EventEffects(
                cash=-6000, exposure=5, cognition_exp=5,
                buffs=(BuffSpec("exposure_weekly", -3, 3, "多个假达人视频被扒"),),
            )),
        ),
    ),
    InteractiveEvent(
        "morning_cant_wake", "错过早高峰", "连续高强度经营，今天店门10点才开，错过了整个早高峰。",
        min_week=4, probability=0.40, context_check="high_fatigue",
        notification_effects=EventEffects(
            reputation=-5, morale=-5, cognition_exp=10,
            buffs=(BuffSpec("revenue_multiplier", -0.15, 1, "错过早高峰，本周营业额下降"),),
        ),
    ),
    InteractiveEvent(
        "food_poisoning", "顾客吃坏肚子了", "一位顾客说吃完你家的东西上吐下泻，要求赔偿。",
        min_week=3, probability=0.30, context_check="cleanliness_low",
        options=(
            EventOption("compensate_fast", "立即赔偿 + 排查后厨", EventEffects(
                cash=-3000, reputation=-5, cleanliness=15, cognition_exp=18,
                buffs=(BuffSpec("reputation_weekly", -2, 2, "食品安全事件短期影响"),),
            )),
            EventOption("deny_responsibility", "否认是你家的问题", EventEffects(
                cognition_exp=5, buffs=(BuffSpec("reputation_weekly", -5, 4, "食品安全投诉被曝光"),),
            )),
        ),
    ),
    InteractiveEvent(
        "influencer_refund_success", "达人退款了", "那个达人居然真的退了一部分钱。",
        min_week=1, probability=0.0,
        notification_effects=EventEffects(cash=2000, cognition_exp=5),
    ),
]
INTERACTIVE_EVENTS: Dict[str, InteractiveEvent] = {e.event_id: e for e in _EVENT_LIST}


def season_from_month(month: int) -> str:
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"


def current_month(start_month: int, week: int) -> int:
    return ((start_month - 1 + week // 4) % 12) + 1


def map_launch_to_awareness(progress: float) -> float:
    return 0.25 + 0.75 / (1.0 + math.exp(-(progress - 45.0) / 10.0))


# ---------------------------------------------------------------------------
# Marketing
# ---------------------------------------------------------------------------


@dataclass
class MarketingActivityConfig:
    activity_id: str
    name: str
    activity_type: str  # one_time|continuous
    category: str  # exposure|reputation|both
    base_cost: float
    exposure_boost: float
    reputation_boost: float
    price_modifier: float
    dependency: float
    max_duration: int = 0
    cooldown_weeks: int = 0
    unique: bool = False


MARKETING_ACTIVITIES: Dict[str, MarketingActivityConfig] = {
    m.activity_id: m
    for m in [
        MarketingActivityConfig("social_media", "社交媒体推广", "continuous", "exposure", 2000, 15, 0, 1.0, 0.3),
        MarketingActivityConfig("local_ad", "本地广告投放", "one_time", "exposure", 6000, 38, 0, 1.0, 0.0, max_duration=3, cooldown_weeks=6),
        MarketingActivityConfig("grand_opening", "开业大酬宾", "one_time", "exposure", 12000, 55, 5, 0.7, 0.0, max_duration=2, unique=True),
        MarketingActivityConfig("ingredient_upgrade", "食材升级", "continuous", "reputation", 800, 0, 3, 1.0, 0.0),
        MarketingActivityConfig("service_training", "服务培训周", "one_time", "reputation", 1200, 0, 10, 1.0, 0.0, max_duration=1, cooldown_weeks=4),
        MarketingActivityConfig("loyalty_day", "老客回馈日", "one_time", "reputation", 600, 0, 8, 0.9, 0.0, max_duration=1, cooldown_weeks=3),
        MarketingActivityConfig("member_system", "会员体系", "continuous", "both", 500, 4, 3, 0.9, 0.15),
        MarketingActivityConfig("flash_sale", "5折大促", "one_time", "both", 0, 20, -5, 0.5, 0.0, max_duration=1, cooldown_weeks=6),
    ]
}

REPUTATION_FLOOR = 10.0


def activity_decay(config: MarketingActivityConfig, active_weeks: int) -> float:
    if config.dependency <= 0 or active_weeks <= 4:
        return 1.0
    return max(0.3, 1.0 - (active_weeks - 4) * config.dependency * 0.05)


def stop_penalty(config: MarketingActivityConfig, active_weeks: int) -> float:
    return min(0.5, config.dependency * min(active_weeks, 20) * 0.05)


def exposure_floor(traffic_modifier: float) -> float:
    return float(round(8 + (traffic_modifier - 0.5) * 20))


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

WASTE_RATE = {"normal": 0.05, "refrigerated": 0.08, "frozen": 0.03}
HOLDING_RATE = {"normal": 0.02, "refrigerated": 0.05, "frozen": 0.07}
RESTOCK_TARGET_WEEKS = {"manual": 0.0, "auto_conservative": 1.0, "auto_standard": 1.5, "auto_aggressive": 2.5}
RESTOCK_STRATEGIES = tuple(RESTOCK_TARGET_WEEKS)
DEFAULT_SALES_ESTIMATE = 50

# (min, max, sales_modifier, reputation_impact)
STOCKOUT_EFFECTS = [
    (0.9, 1.0, 1.0, 0.0),
    (0.8, 0.9, 0.97, -0.3),
    (0.7, 0.8, 0.93, -0.8),
    (0.6, 0.7, 0.87, -1.5),
    (0.5, 0.6, 0.82, -3.0),
    (0.2, 0.5, 0.70, -6.0),
    (0.0, 0.2, 0.5, -10.0),
]


def stockout_effect(fulfillment: float) -> Tuple[float, float]:
    for lo, hi, sales_mod, rep in STOCKOUT_EFFECTS:
        if lo <= fulfillment <= hi:
            return sales_mod, rep
    return STOCKOUT_EFFECTS[-1][2], STOCKOUT_EFFECTS[-1][3]


# ---------------------------------------------------------------------------
# Cognition
# ---------------------------------------------------------------------------

COGNITION_EXP_REQUIRED = [0, 130, 260, 420, 680, 900]
MAX_COGNITION_LEVEL = 5

PASSIVE_EXP_BASE = 10
PASSIVE_EXP_PROFIT = 18
PASSIVE_EXP_PER_1000_PROFIT = 3
PASSIVE_EXP_PROFIT_SCALE_MAX = 30
PASSIVE_EXP_STREAK_WEEKS = 3
PASSIVE_EXP_STREAK = 8
PASSIVE_EXP_LOSS = 10
PASSIVE_EXP_FIRST_EVENT = 18
PASSIVE_EXP_PER_OPERATION = 2
PASSIVE_EXP_OPERATION_MAX = 40
PASSIVE_EXP_SHOP_OBSERVATION = 7

CONSULT_EXP = 40
CONSULT_WEEKLY_LIMIT = 2
CONSULT_COST = 2000

MISTAKE_EXP = {
    "quick_franchise": (80, "加盟了快招品牌"),
    "inventory_overstock": (25, "库存积压超过两周营收"),
    "cash_flow_break": (60, "现金流断裂"),
    "over_staff": (20, "人力成本超过房租两倍"),
    "single_product": (15, "长期只卖单一产品"),
}


def cognition_exp_to_next(level: int) -> float:
    if level >= MAX_COGNITION_LEVEL:
        return math.inf
    return float(COGNITION_EXP_REQUIRED[level + 1])


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


@dataclass
class Platform:
    platform_id: str
    name: str
    commission_rate: float
    audience: Dict[str, float]
    min_cognition: Dict[str, int]  # brand type -> level
    boost_weeks: int


@dataclass
class PromotionTier:
    tier_id: str
    name: str
    weekly_cost: float
    weight_bonus: float
    rating_boost: float


@dataclass
class DiscountTier:
    tier_id: str
    name: str
    subsidy_rate: float
    conversion_multiplier: float
    weight_bonus: float


@dataclass
class PricingTier:
    tier_id: str
    name: str
    multiplier: float


@dataclass
class PackagingTier:
    tier_id: str
    name: str
    cost_per_order: float
    rating_bonus: float


PLATFORMS: Dict[str, Platform] = {
    p.platform_id: p
    for p in [
        Platform("meituan", "美团外卖", 0.16, _ct(1.0, 1.2, 1.3, 0.3), {"franchise": 0, "independent": 2}, 2),
        Platform("eleme", "饿了么", 0.14, _ct(1.1, 1.0, 1.2, 0.2), {"franchise": 0, "independent": 2}, 2),
        Platform("douyin", "抖音外卖", 0.10, _ct(1.5, 0.8, 0.7, 0.5), {"franchise": 1, "independent": 3}, 3),
    ]
}

PROMOTION_TIERS: List[PromotionTier] = [
    PromotionTier("none", "不推广", 0, 0, 0.0),
    PromotionTier("basic", "基础推广", 500, 8, 0.02),
    PromotionTier("advanced", "进阶推广", 1200, 15, 0.04),
    PromotionTier("premium", "顶级推广", 2500, 22, 0.08),
]

DISCOUNT_TIERS: Dict[str, DiscountTier] = {
    d.tier_id: d
    for d in [
        DiscountTier("none", "不参与满减", 0.0, 0.3, -5),
        DiscountTier("small", "小额满减", 0.15, 0.7, 0),
        DiscountTier("standard", "标准满减", 0.25, 1.0, 5),
        DiscountTier("large", "大额满减", 0.35, 1.3, 10),
        DiscountTier("loss_leader", "亏本引流", 0.5, 1.6, 15),
    ]
}

PRICING_TIERS: Dict[str, PricingTier] = {
    p.tier_id: p
    for p in [
        PricingTier("same", "同价", 1.0),
        PricingTier("slight", "小幅加价", 1.15),
        PricingTier("medium", "中幅加价", 1.25),
        PricingTier("high", "大幅加价", 1.35),
    ]
}

PACKAGING_TIERS: Dict[str, PackagingTier] = {
    p.tier_id: p
    for p in [
        PackagingTier("basic", "基础包装", 2.0, 0.0),
        PackagingTier("premium", "精品包装", 3.5, 0.03),
    ]
}

# pricing -> discount -> elasticity
PRICING_ELASTICITY: Dict[str, Dict[str, float]] = {
    "same": {"none": 1.0, "small": 1.0, "standard": 1.0, "large": 1.0, "loss_leader": 1.0},
    "slight": {"none": 0.85, "small": 0.95, "standard": 1.0, "large": 1.0, "loss_leader": 1.0},
    "medium": {"none": 0.65, "small": 0.8, "standard": 0.95, "large": 1.0, "loss_leader": 1.0},
    "high": {"none": 0.45, "small": 0.6, "standard": 0.8, "large": 0.95, "loss_leader": 1.0},
}

DELIVERY_CONVERSION = 0.010
DELIVERY_RING_DECAY = {"ring0": 1.0, "ring1": 0.45, "ring2": 0.18, "ring3": 0.06}
DELIVERY_COMPETITION_BASE = {"school": 80, "office": 100, "community": 95, "business": 110, "tourist": 45}
DEFAULT_COMPETITION_BASE = 35

INITIAL_PLATFORM_EXPOSURE = 15.0
RATING_PER_FULFILLED = 0.012
RATING_PER_UNFULFILLED = -0.025
RATING_MAX_WEEKLY_GAIN = 0.25
RATING_MIN_WEEKLY_GAIN = -0.5
RATING_INGREDIENT_BONUS = 0.08
RATING_NATURAL_DECAY = 0.02


def discount_pricing_multiplier(pricing_id: str, discount_id: str) -> float:
    tier = DISCOUNT_TIERS.get(discount_id)
    conv = tier.conversion_multiplier if tier else 0.3
    elasticity = PRICING_ELASTICITY.get(pricing_id, {}).get(discount_id, 1.0)
    return conv * elasticity


def promotion_index(tier_id: str) -> int:
    for idx, t in enumerate(PROMOTION_TIERS):
        if t.tier_id == tier_id:
            return idx
    return 0


def promotion_tier(tier_id: str) -> PromotionTier:
    return PROMOTION_TIERS[promotion_index(tier_id)]


# ---------------------------------------------------------------------------
# Consumer rings
# ---------------------------------------------------------------------------

RING_CONFIGS = {
    "ring0": ("门前300m", 1.0),
    "ring1": ("步行1km", 0.5),
    "ring2": ("骑行3km", 0.2),
    "ring3": ("外卖5km", 0.0),
}

LOCATION_RING_MULTIPLIERS: Dict[str, Dict[str, Tuple[float, float]]] = {
    "school": {"ring1": (2.3, 3.0), "ring2": (3.1, 4.6), "ring3": (2.0, 3.4)},
    "office": {"ring1": (1.9, 2.9), "ring2": (3.8, 6.2), "ring3": (4.0, 6.5)},
    "community": {"ring1": (2.5, 3.8), "ring2": (2.0, 3.2), "ring3": (3.5, 5.0)},
    "business": {"ring1": (1.6, 2.4), "ring2": (2.4, 4.0), "ring3": (2.6, 4.0)},
    "tourist": {"ring1": (1.3, 1.8), "ring2": (1.6, 2.5), "ring3": (1.3, 2.6)},
}

CUSTOMER_RING_DECAY: Dict[str, Dict[str, float]] = {
    "students": {"ring0": 1.0, "ring1": 1.0, "ring2": 0.6, "ring3": 0.4},
    "office": {"ring0": 1.0, "ring1": 1.0, "ring2": 0.7, "ring3": 0.9},
    "family": {"ring0": 1.0, "ring1": 1.0, "ring2": 0.9, "ring3": 0.8},
    "tourist": {"ring0": 1.0, "ring1": 0.65, "ring2": 0.4, "ring3": 0.05},
}

SHOP_RING_WEIGHTS = {"ring0": 0.4, "ring1": 0.4, "ring2": 0.2, "ring3": 0.0}

SEASON_TRAFFIC_MOD: Dict[str, Dict[str, float]] = {
    "spring": _ct(1.0, 1.0, 1.05, 1.1),
    "summer": _ct(0.7, 0.95, 1.1, 1.3),
    "autumn": _ct(1.05, 1.0, 1.0, 0.9),
    "winter": _ct(0.95, 1.0, 0.9, 0.6),
}


# ---------------------------------------------------------------------------
# Demand tables
# ---------------------------------------------------------------------------

PRICE_ELASTICITY = _ct(1.3, 0.8, 1.0, 0.5)

SEASON_SUBTYPE_BONUS: Dict[str, Dict[str, float]] = {
    "spring": {"cold_drink": 1.05, "hot_drink": 1.0, "main_food": 1.0, "snack": 1.1, "dessert": 1.1},
    "summer": {"cold_drink": 1.5, "hot_drink": 0.55, "main_food": 0.9, "snack": 1.2, "dessert": 1.15},
    "autumn": {"cold_drink": 0.85, "hot_drink": 1.15, "main_food": 1.1, "snack": 1.0, "dessert": 1.0},
    "winter": {"cold_drink": 0.55, "hot_drink": 1.5, "main_food": 1.15, "snack": 0.85, "dessert": 0.9},
}

LOCATION_CATEGORY_OCCASION: Dict[str, Dict[str, float]] = {
    "school": _cat(1.2, 1.1, 1.15, 0.95),
    "office": _cat(1.05, 0.9, 0.9, 1.2),
    "community": _cat(0.95, 1.0, 1.05, 1.12),
    "business": _cat(1.1, 1.0, 1.08, 1.0),
    "tourist": _cat(1.08, 1.12, 1.12, 0.92),
}

CUSTOMER_CATEGORY_AFFINITY: Dict[str, Dict[str, float]] = {
    "students": _cat(1.15, 1.08, 1.12, 0.92),
    "office": _cat(1.0, 0.92, 0.88, 1.2),
    "family": _cat(0.9, 1.0, 1.08, 1.12),
    "tourist": _cat(1.05, 1.12, 1.05, 0.9),
}

SUBSTITUTION: Dict[str, Dict[str, float]] = {
    "drink": {"snack": 0.12, "food": 0.06, "meal": 0.04, "grocery": 0.05},
    "food": {"snack": 0.1, "meal": 0.08, "drink": 0.04, "grocery": 0.03},
    "snack": {"drink": 0.1, "food": 0.09, "meal": 0.06, "grocery": 0.04},
    "meal": {"food": 0.12, "snack": 0.07, "drink": 0.03, "grocery": 0.02},
}

SAME_RING_WEIGHT = 1.0
INNER_RING_WEIGHT = 0.60
OUTER_RING_WEIGHT = 0.40
MAX_SUBSTITUTION_PRESSURE = 0.28
SHARE_BASELINE = 0.38
DEMAND_VARIANCE = 0.08


# ---------------------------------------------------------------------------
# Nearby shops
# ---------------------------------------------------------------------------


@dataclass
class ShopProductTemplate:
    name: str
    category: str
    sub_type: str
    price_range: Tuple[float, float]
    cost_rate: float
    quality: float
    appeal: float


@dataclass
class ChainTemplate:
    template_id: str
    name: str
    category: str
    tier: str  # budget|standard|premium
    products: List[ShopProductTemplate]
    exposure: float
    service_quality: float
    decoration_level: int
    volatility: float
    delivery_probability: float


@dataclass
class IndependentTemplate:
    category: str
    products: List[ShopProductTemplate]
    exposure_range: Tuple[float, float]
    service_range: Tuple[float, float]
    decoration_range: Tuple[int, int]
    volatility: float


@dataclass
class ShopDistribution:
    count_range: Tuple[int, int]
    chain_probability: float
    category_weights: Dict[str, float]
    tier_weights: Dict[str, float]
    preferred_chains: List[str]


_P = ShopProductTemplate

CHAIN_TEMPLATES: List[ChainTemplate] = [
    ChainTemplate("mixue_nearby", "蜜雪冰城", "drink", "budget", [
        _P("柠檬水", "drink", "cold_drink", (4, 4), 0.3, 60, 85),
        _P("冰淇淋", "snack", "dessert", (3, 4), 0.35, 55, 80),
        _P("奶茶", "drink", "cold_drink", (6, 8), 0.35, 55, 80),
    ], 95, 0.75, 2, 0.02, 0.95),
    ChainTemplate("luckin_nearby", "瑞幸咖啡", "drink", "standard", [
        _P("生椰拿铁", "drink", "hot_drink", (9, 13), 0.35, 75, 85),
        _P("美式咖啡", "drink", "hot_drink", (9, 12), 0.25, 70, 70),
    ], 90, 0.85, 3, 0.05, 0.95),
    ChainTemplate("shaxian_nearby", "沙县小吃", "meal", "budget", [
        _P("拌面", "meal", "main_food", (8, 12), 0.4, 60, 70),
        _P("蒸饺", "meal", "main_food", (6, 10), 0.4, 60, 65),
        _P("炖汤", "meal", "main_food", (10, 15), 0.45, 65, 60),
    ], 80, 0.65, 1, 0.03, 0.95),
    ChainTemplate("lanzhou_nearby", "兰州拉面", "meal", "budget", [
        _P("牛肉面", "meal", "main_food", (12, 18), 0.45, 65, 75),
        _P("拌面", "meal", "main_food", (10, 14), 0.4, 60, 65),
    ], 75, 0.65, 1, 0.03, 0.80),
    ChainTemplate("zhengxin_nearby", "正新鸡排", "food", "budget", [
        _P("大鸡排", "food", "snack", (12, 15), 0.4, 60, 80),
        _P("烤肠", "food", "snack", (5, 8), 0.35, 55, 70),
    ], 80, 0.70, 2, 0.03, 0.60),
    ChainTemplate("juewei_nearby", "绝味鸭脖", "food", "standard", [
        _P("鸭脖", "food", "snack", (15, 25), 0.45, 70, 75),
        _P("鸭翅", "food", "snack", (18, 28), 0.45, 70, 70),
    ], 85, 0.80, 3, 0.04, 0.70),
    ChainTemplate("starbucks_nearby", "星巴克", "drink", "premium", [
        _P("拿铁", "drink", "hot_drink", (30, 38), 0.25, 85, 80),
        _P("星冰乐", "drink", "cold_drink", (35, 42), 0.2, 80, 75),
    ], 95, 0.85, 4, 0.01, 0.70),
    ChainTemplate("mcdonald_nearby", "麦当劳", "meal", "standard", [
        _P("巨无霸", "meal", "main_food", (22, 28), 0.4, 75, 80),
        _P("薯条", "snack", "snack", (10, 15), 0.3, 70, 85),
    ], 95, 0.85, 3, 0.02, 0.90),
    ChainTemplate("heytea_nearby", "喜茶", "drink", "premium", [
        _P("多肉葡萄", "drink", "cold_drink", (15, 22), 0.35, 85, 85),
        _P("芝芝莓莓", "drink", "cold_drink", (18, 25), 0.3, 85, 80),
    ], 85, 0.85, 4, 0.03, 0.90),
    ChainTemplate("wallace_nearby", "华莱士", "meal", "budget", [
        _P("香辣鸡腿堡", "meal", "main_food", (8, 12), 0.45, 50, 70),
        _P("炸鸡", "food", "snack", (10, 15), 0.4, 50, 75),
    ], 75, 0.65, 2, 0.04, 0.95),
]

INDEPENDENT_TEMPLATES: List[IndependentTemplate] = [
    IndependentTemplate("drink", [
        _P("奶茶", "drink", "cold_drink", (8, 16), 0.35, 55, 70),
        _P("果茶", "drink", "cold_drink", (10, 18), 0.35, 55, 65),
    ], (25, 55), (0.45, 0.85), (1, 3), 0.08),
    IndependentTemplate("drink", [
        _P("手冲咖啡", "drink", "hot_drink", (15, 30), 0.3, 70, 60),
        _P("拿铁", "drink", "hot_drink", (18, 28), 0.3, 65, 65),
    ], (20, 50), (0.55, 0.9), (2, 4), 0.06),
    IndependentTemplate("food", [
        _P("烤串", "food", "snack", (2, 5), 0.4, 55, 75),
        _P("炸串", "food", "snack", (2, 4), 0.35, 50, 70),
    ], (20, 45), (0.35, 0.75), (1, 2), 0.1),
    IndependentTemplate("snack", [
        _P("蛋糕", "snack", "dessert", (15, 35), 0.4, 60, 65),
        _P("面包", "snack", "snack", (8, 18), 0.4, 55, 60),
    ], (25, 55), (0.55, 0.85), (2, 4), 0.06),
    IndependentTemplate("meal", [
        _P("盖浇饭", "meal", "main_food", (12, 22), 0.45, 50, 65),
        _P("炒菜", "meal", "main_food", (15, 28), 0.45, 55, 60),
    ], (20, 45), (0.45, 0.75), (1, 3), 0.07),
    IndependentTemplate("meal", [
        _P("麻辣烫", "meal", "main_food", (15, 30), 0.4, 55, 75),
    ], (25, 55), (0.45, 0.75), (1, 3), 0.08),
    IndependentTemplate("grocery", [
        _P("饮料零食", "grocery", "snack", (3, 10), 0.7, 60, 50),
    ], (30, 60), (0.5, 0.7), (1, 2), 0.03),
]

INDEPENDENT_DELIVERY_PROBABILITY = {
    "meal": 0.7, "drink": 0.6, "food": 0.5, "snack": 0.4, "grocery": 0.2, "service": 0.05,
}


def _dist(count, chain_p, weights, tiers, preferred) -> ShopDistribution:
    keys = ("drink", "food", "snack", "meal", "grocery", "service")
    return ShopDistribution(
        count_range=count,
        chain_probability=chain_p,
        category_weights=dict(zip(keys, weights)),
        tier_weights=dict(zip(("budget", "standard", "premium"), tiers)),
        preferred_chains=[f"{c}_nearby" for c in preferred],
    )


SHOP_DISTRIBUTIONS: Dict[str, ShopDistribution] = {
    "school": _dist((9, 15), 0.65, (0.35, 0.2, 0.15, 0.2, 0.08, 0.02), (0.5, 0.35, 0.15),
                    ["mixue", "zhengxin", "wallace", "shaxian", "luckin"]),
    "office": _dist((8, 14), 0.75, (0.3, 0.1, 0.1, 0.35, 0.1, 0.05), (0.15, 0.5, 0.35),
                    ["luckin", "starbucks", "mcdonald", "lanzhou", "heytea"]),
    "community": _dist((8, 13), 0.5, (0.15, 0.15, 0.15, 0.25, 0.2, 0.1), (0.45, 0.4, 0.15),
                       ["mixue", "shaxian", "juewei", "wallace"]),
    "business": _dist((10, 16), 0.8, (0.3, 0.15, 0.15, 0.25, 0.05, 0.1), (0.1, 0.45, 0.45),
                      ["starbucks", "heytea", "luckin", "mcdonald", "juewei"]),
    "tourist": _dist((9, 14), 0.6, (0.25, 0.25, 0.2, 0.2, 0.05, 0.05), (0.25, 0.4, 0.35),
                     ["starbucks", "heytea", "mcdonald", "juewei", "mixue"]),
}

SHOP_SURNAMES = list("张李王刘陈杨赵黄周吴孙马")
SHOP_PREFIXES = list("老小大新金福旺鑫好美")
SHOP_CATEGORY_WORDS: Dict[str, List[str]] = {
    "drink": ["茶饮", "奶茶", "果汁", "饮品", "茶坊"],
    "food": ["小吃", "烧烤", "串串", "炸鸡", "卤味"],
    "snack": ["甜品", "蛋糕", "面包", "糕点", "零食"],
    "meal": ["快餐", "面馆", "饭店", "餐厅", "食堂"],
    "grocery": ["便利店", "超市", "杂货", "零食铺"],
    "service": ["美甲", "理发", "洗衣", "打印"],
}

NEW_SHOP_PROBABILITY = 0.08
MAX_ACTIVE_SHOPS = 20
CHAIN_CLOSE_RATE = 0.003
INDEPENDENT_CLOSE_RATE = 0.020
MIN_WEEKS_BEFORE_CLOSING = 4
CLOSING_NOTICE_WEEKS = 2


def exposure_coefficient(exposure: float) -> float:
    return 0.15 + 0.85 * (1.0 - math.exp(-exposure / 30.0))


def reputation_coefficient(reputation: float) -> float:
    return 0.35 + 0.85 * reputation / 100.0
