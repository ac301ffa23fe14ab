from __future__ import annotations

import pytest

from models.schemas import (
    CrewRole,
    Equipment,
    Formula,
    Level,
    RateItem,
    RateQualifiers,
    SeatClass,
    ServiceCategory,
    TransportMode,
    TransportPlan,
)
from pricing.cost_engine import CostEngine
from pricing.rate_table import RateTable, default_rate_table


def _air_plan(**overrides) -> TransportPlan:
    data = {
        "category": ServiceCategory.AIR_TRANSPORT,
        "risk": Level.MEDIUM,
        "transport_mode": TransportMode.CIVIL,
        "seat_class": SeatClass.STRETCHER,
        "crew": [CrewRole.DOCTOR, CrewRole.NURSE],
        "equipment": Equipment(ventilator=False, ecmo=False),
        "medication_level": Level.MEDIUM,
    }
    data.update(overrides)
    return TransportPlan(**data)


def test_formulas_scale_only_by_their_inputs():
    price = 1000.0
    assert CostEngine.evaluate(RateItem(item="a", unit_price=price, formula=Formula.FLAT), 120, 4, 3) == 1000
    assert CostEngine.evaluate(RateItem(item="a", unit_price=price, formula=Formula.PER_KM), 120, 4, 3) == 120_000
    assert CostEngine.evaluate(RateItem(item="a", unit_price=price, formula=Formula.PER_KM_PER_CREW), 120, 4, 3) == 360_000
    assert CostEngine.evaluate(RateItem(item="a", unit_price=price, formula=Formula.PER_DAY), 120, 4, 3) == 4_000
    assert CostEngine.evaluate(RateItem(item="a", unit_price=price, formula=Formula.PER_DAY_PER_CREW), 120, 4, 3) == 12_000


def test_total_is_sum_of_items_for_every_mode():
    engine = CostEngine(default_rate_table())
    for mode in TransportMode:
        plan = _air_plan(transport_mode=mode)
        cost = engine.compute_cost(ServiceCategory.AIR_TRANSPORT, plan, distance_km=1234.5, days=3)
        assert cost.total == pytest.approx(sum(cost.items.values()))
        assert cost.currency == "KRW"


def test_civil_stretcher_medium_plan_matches_rate_table():
    engine = CostEngine(default_rate_table())
    cost = engine.compute_cost(ServiceCategory.AIR_TRANSPORT, _air_plan(), distance_km=1000, days=3)

    # stretcher 900/km, crew return 150/km/crew, crew seat beside a stretcher 150/km/crew
    assert cost.items["Air fare"] == pytest.approx(900 * 1000 + 150 * 1000 * 2 + 150 * 1000 * 2)
    assert cost.items["Medical staff wages"] == pytest.approx((1_000_000 + 500_000) * 3)
    assert cost.items["Equipment & medication"] == pytest.approx((4_500_000 + 200_000) * 3)
    assert cost.items["Accommodation & meals"] == pytest.approx(250_000 * 3 * 2)
    assert cost.items["Miscellaneous"] == pytest.approx(3_800_000)
    assert "Sea fare" not in cost.items


def test_air_ambulance_with_ventilator_and_ecmo():
    engine = CostEngine(default_rate_table())
    plan = _air_plan(
        risk=Level.HIGH,
        transport_mode=TransportMode.AIR_AMBULANCE,
        equipment=Equipment(ventilator=True, ecmo=True),
        medication_level=Level.HIGH,
    )
    cost = engine.compute_cost(ServiceCategory.AIR_TRANSPORT, plan, distance_km=2000, days=2)

    assert cost.items["Air fare"] == pytest.approx(15_000 * 2000)
    assert cost.items["Equipment & medication"] == pytest.approx((4_500_000 + 5_000_000 + 20_000_000 + 400_000) * 2)


def test_items_with_same_name_accumulate():
    table = RateTable(
        {
            ServiceCategory.AIR_TRANSPORT: [
                RateItem(item="Fees", unit_price=100, formula=Formula.FLAT),
                RateItem(item="Fees", unit_price=50, formula=Formula.PER_DAY),
                RateItem(
                    item="Fees",
                    unit_price=999,
                    formula=Formula.FLAT,
                    qualifiers=RateQualifiers(transport_mode=TransportMode.SHIP),
                ),
            ]
        }
    )
    cost = CostEngine(table).compute_cost(ServiceCategory.AIR_TRANSPORT, _air_plan(), distance_km=10, days=2)
    assert cost.items == {"Fees": 200}
    assert cost.total == 200


def test_event_support_total_does_not_depend_on_distance():
    engine = CostEngine(default_rate_table())
    plan = TransportPlan(
        category=ServiceCategory.EVENT_SUPPORT,
        risk=Level.LOW,
        transport_mode=TransportMode.CIVIL,
        seat_class=SeatClass.BUSINESS,
        crew=[CrewRole.DOCTOR, CrewRole.NURSE, CrewRole.STAFF],
    )
    near = engine.compute_cost(ServiceCategory.EVENT_SUPPORT, plan, distance_km=0, days=2)
    far = engine.compute_cost(ServiceCategory.EVENT_SUPPORT, plan, distance_km=9000, days=2)
    assert near.total == far.total == pytest.approx(7_000_000)


def test_deceased_bundle_never_includes_distance_lines():
    engine = CostEngine(default_rate_table())
    plan = TransportPlan(
        category=ServiceCategory.DECEASED_TRANSPORT,
        cremated=True,
        risk=Level.LOW,
        transport_mode=TransportMode.CIVIL,
        seat_class=SeatClass.COFFIN,
        crew=[CrewRole.HANDLER],
    )
    cost = engine.compute_cost(ServiceCategory.DECEASED_TRANSPORT, plan, distance_km=3000, days=1)
    assert "Cargo air fare" not in cost.items
    assert cost.items["Repatriation transport"] == 2_500_000
    assert cost.items["Funeral & documentation services"] == 4_000_000


def test_qualifiers_require_every_named_field():
    plan = _air_plan(seat_class=SeatClass.BUSINESS)
    assert CostEngine.qualifies(None, plan)
    assert CostEngine.qualifies(RateQualifiers(transport_mode=TransportMode.CIVIL), plan)
    assert not CostEngine.qualifies(
        RateQualifiers(transport_mode=TransportMode.CIVIL, seat_class=SeatClass.STRETCHER), plan
    )
    assert CostEngine.qualifies(RateQualifiers(role=CrewRole.NURSE), plan)
    assert not CostEngine.qualifies(RateQualifiers(role=CrewRole.HANDLER), plan)
    assert not CostEngine.qualifies(RateQualifiers(equipment="ventilator"), plan)
