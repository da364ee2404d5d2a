from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from eclair_adapter.errors import (
    PaymentFailedError,
    PaymentServiceUnavailableError,
    PollCancelled,
    PollTimeoutError,
)
from eclair_adapter.event import is_cancelled, stop_event
from eclair_adapter.log import getLogger
from eclair_adapter.utils import msat_to_sat

from .gate import check_amount
from .models import Payment, PaymentPart
from .states import (
    PAYMENT_STATUS_FAILED,
    amount_paid,
    fees_settled,
    is_pending,
    payment_state_of,
    representative_part,
)

if TYPE_CHECKING:
    from eclair_adapter.config import PollConfig, SendConfig
    from eclair_adapter.rpc.client import EclairRpc, JSONResponse

# seconds between two checks of the cancel events while waiting
CANCEL_CHECK_INTERVAL = 0.1

logger = getLogger(__name__)


def parse_parts(result: JSONResponse) -> list[PaymentPart]:
    """Converts a getsentinfo response into payment parts."""

    if not isinstance(result, list):
        return []
    return [PaymentPart.from_dict(p) for p in result]


def _payment_id(result: JSONResponse) -> str:
    # payinvoice answers with the id as plain string; for split payments the
    # first id is representative.
    if isinstance(result, str) and result:
        return result
    if isinstance(result, list) and result:
        return str(result[0])
    raise PaymentFailedError(f"Payment was not accepted by the node: {result=}")


class SettlementReconciler:
    """
    Submits a payment and polls the node until all parts of the payment have
    reached a final status.
    """

    def __init__(
        self,
        rpc: EclairRpc,
        send_cfg: SendConfig,
        poll_cfg: PollConfig,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.rpc = rpc
        self.send_cfg = send_cfg
        self.poll_cfg = poll_cfg
        self._clock = clock

    def can_send(self, amount_msat: int) -> bool:
        return self.send_cfg.allows(amount_msat)

    def send(self, payment: Payment, cancel: threading.Event | None = None) -> Payment:
        """
        Pays the invoice of the payment and blocks until the payment is final.
        Setting the cancel event (or the global stop event) aborts the wait with
        PollCancelled; the payment itself may still settle on the node.
        """

        check_amount(self.send_cfg, payment.amount_msat, "send")

        result = self.rpc.pay_invoice(
            invoice=payment.request,
            amount_msat=payment.amount_msat,
            max_attempts=self.send_cfg.max_attempts,
            max_fee_pct=f"{payment.fee_limit_pct:.6f}",
            fee_threshold_sat=msat_to_sat(self.send_cfg.fee_threshold_msat),
        )
        payment_id = _payment_id(result)
        logger.info(f"Payment submitted; {payment_id=}; {payment.amount_msat=}")

        parts = self.poll(payment_id, cancel)
        first = representative_part(parts)

        if first.status == PAYMENT_STATUS_FAILED:
            msg = first.failure_message or "Payment failed."
            logger.warning(f"Payment failed; {payment_id=}; {msg}")
            raise PaymentServiceUnavailableError(msg)

        res = payment.with_values(
            preimage=first.preimage,
            preimage_hash=first.payment_hash,
            amount_paid_msat=amount_paid(parts),
            fee_settled_msat=fees_settled(parts),
            label=payment_id,
            state=payment_state_of(parts),
        )
        logger.info(
            f"Payment settled; {payment_id=}; {res.fee_settled_msat=}; {len(parts)=}"
        )

        return res

    def poll(
        self, payment_id: str, cancel: threading.Event | None = None
    ) -> list[PaymentPart]:
        """
        Polls getsentinfo until no part of the payment is pending anymore.
        Raises PollTimeoutError if the payment is still pending after the
        configured timeout.
        """

        deadline = self._clock() + self.poll_cfg.timeout
        interval = self.poll_cfg.interval
        polls = 0

        while True:
            self._wait(interval, cancel)

            parts = parse_parts(self.rpc.get_sent_info(id=payment_id))
            polls += 1

            # The node may not know the payment yet directly after submission.
            if parts and not is_pending(parts):
                logger.debug(f"Payment final after {polls=}; {payment_id=}")
                return parts

            if self._clock() >= deadline:
                raise PollTimeoutError(payment_id, self.poll_cfg.timeout)

            logger.trace(f"Payment still pending; {payment_id=}; {polls=}")
            interval = min(interval * self.poll_cfg.backoff, self.poll_cfg.max_interval)

    def _wait(self, seconds: float, cancel: threading.Event | None) -> None:
        """Sleeps the given seconds unless one of the cancel events is set."""

        end = self._clock() + seconds
        while not is_cancelled(cancel):
            remaining = end - self._clock()
            if remaining <= 0:
                return
            event = cancel if cancel is not None else stop_event
            event.wait(min(remaining, CANCEL_CHECK_INTERVAL))

        raise PollCancelled("Waiting for payment settlement was cancelled.")
