from __future__ import annotations

import asyncio

from models.schemas import CrewRole, InboundMessage, Level, SeatClass, ServiceCategory, TransportMode, TransportPlan
from pricing.cost_engine import CostEngine
from pricing.rate_table import default_rate_table


def test_non_cremated_bundle_for_two_escorts_over_three_days():
    plan = TransportPlan(
        category=ServiceCategory.DECEASED_TRANSPORT,
        cremated=False,
        risk=Level.LOW,
        transport_mode=TransportMode.CIVIL,
        seat_class=SeatClass.COFFIN,
        crew=[CrewRole.HANDLER, CrewRole.STAFF],
    )
    cost = CostEngine(default_rate_table()).compute_cost(ServiceCategory.DECEASED_TRANSPORT, plan, distance_km=500, days=3)

    assert cost.items == {
        "Repatriation transport": 8_000_000,
        "Funeral & documentation services": 3_500_000,
        "Escort wages": (1_000_000 + 400_000) * 3,
        "Accommodation & meals": 250_000 * 3 * 2,
    }
    assert cost.total == 17_200_000


def test_repatriation_request_end_to_end(make_orchestrator):
    async def _run():
        reply = await make_orchestrator().route_message(
            InboundMessage(
                session_id="dec-1",
                message="Repatriation of the body, not cremated, from Bangkok to Seoul, 3 days",
            )
        )
        quote = reply.quotes[0]
        assert quote.plan.category == ServiceCategory.DECEASED_TRANSPORT
        assert quote.plan.seat_class == SeatClass.COFFIN
        assert quote.plan.cremated is False
        assert "Cargo air fare" not in reply.reply
        assert "Repatriation transport" in reply.reply
        assert "not cremated (coffin)" in reply.reply
        # one handler escort from the default repatriation plan
        assert "|**Total**|**approx. 15,250,000 KRW**|" in reply.reply

    asyncio.run(_run())
