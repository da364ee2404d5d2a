from __future__ import annotations

from typing import TYPE_CHECKING

from eclair_adapter.errors import RouteNotFoundError
from eclair_adapter.log import getLogger
from eclair_adapter.utils import percentage_round_up

if TYPE_CHECKING:
    from eclair_adapter.rpc.client import EclairRpc

    from .models import Payment

logger = getLogger(__name__)


def _route_hops(route) -> list:
    # Newer eclair versions wrap the node ids in {"routes": [{"nodeIds": [...]}]}.
    if isinstance(route, dict):
        routes = route.get("routes") or []
        if not routes:
            return []
        return list(routes[0].get("nodeIds", []))
    if isinstance(route, list):
        return route
    # e.g. a plain error message
    return []


class FeeEstimator:
    def __init__(self, rpc: EclairRpc) -> None:
        self.rpc = rpc

    def estimate_fee(self, payment: Payment) -> int:
        """
        Estimates the fee in msat for a payment. A direct channel to the payee
        costs nothing, otherwise the full fee limit is assumed.
        """

        route = _route_hops(
            self.rpc.find_route(payment.request, payment.amount_msat)
        )

        if len(route) < 2:
            raise RouteNotFoundError("No route found.")

        if len(route) == 2:
            return 0

        fee = percentage_round_up(payment.amount_msat, payment.fee_limit_pct)
        logger.debug(f"Estimated fee {fee=} for {len(route)} hops")
        return fee
