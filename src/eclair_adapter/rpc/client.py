from __future__ import annotations

from collections.abc import Callable
from typing import Any

import requests
from requests.auth import AuthBase, HTTPBasicAuth, HTTPDigestAuth

from eclair_adapter.config import RpcConfig
from eclair_adapter.errors import ServiceUnavailableError
from eclair_adapter.log import getLogger, log_func_call

JSONResponse = dict[str, Any] | list[Any] | str

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/x-www-form-urlencoded",
}

logger = getLogger(__name__)


def require_fields(res: JSONResponse, endpoint: str, *keys: str) -> dict[str, Any]:
    """
    Returns the response as dict if it contains all keys. Otherwise the node
    answered with something we cannot use and a ServiceUnavailableError is
    raised.
    """

    if not isinstance(res, dict):
        raise ServiceUnavailableError(f"Unexpected response for '{endpoint}': {res}")

    if missing := [k for k in keys if k not in res]:
        raise ServiceUnavailableError(
            f"Response for '{endpoint}' is missing {', '.join(missing)}"
        )

    return res


def _new_auth(password: str | None, authentication: str) -> AuthBase | None:
    # eclair ignores the user name, only the password is checked.
    if not password:
        return None

    if authentication == "digest":
        return HTTPDigestAuth("", password)

    return HTTPBasicAuth("", password)


def _error_message(error: requests.RequestException) -> str:
    """
    Extracts the upstream message. eclair answers errors with a json body like
    {"error": "..."}.
    """

    response = error.response
    if response is None:
        return str(error)

    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and (msg := body.get("error")):
        return str(msg)

    return f"{response.status_code} {response.reason}: {response.text}".strip()


class EclairRpc:
    """
    Issues named rpc calls against the eclair http api. All calls are POSTs
    with form encoded parameters and return json.
    """

    def __init__(
        self,
        base_url: str,
        password: str | None = None,
        authentication: str = "basic",
        timeout: float = 30.0,
        new_session: Callable[[], requests.Session] = requests.Session,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._auth = _new_auth(password, authentication)
        self._new_session = new_session

    @classmethod
    def from_config(cls, cfg: RpcConfig) -> EclairRpc:
        return cls(
            base_url=cfg.base_url,
            password=cfg.password,
            authentication=cfg.authentication,
            timeout=cfg.timeout,
        )

    @property
    def _session(self) -> requests.Session:
        """
        Creates a new session for each call. Calls are issued from the
        bridge workers and from callers of the service concurrently, a session
        must not be shared between threads.
        """

        session = self._new_session()
        session.headers.update(DEFAULT_HEADERS)
        session.auth = self._auth
        return session

    def call(self, endpoint: str, params: dict[str, Any] | None = None) -> JSONResponse:
        """
        Posts the params to the endpoint and returns the decoded json. Transport
        errors and non-2xx responses raise a ServiceUnavailableError. A body
        which is not json results in an empty dict.
        """

        params = {k: v for k, v in (params or {}).items() if v is not None}

        with self._session as session:
            try:
                response = session.post(
                    f"{self.base_url}/{endpoint}", data=params, timeout=self.timeout
                )
                response.raise_for_status()
            except requests.RequestException as e:
                msg = _error_message(e)
                logger.error(f"Error during '{endpoint}'; {msg}")
                raise ServiceUnavailableError(msg) from e

        try:
            res = response.json()
        except ValueError:
            logger.warning(f"Malformed response body for '{endpoint}'")
            return {}

        logger.trace_lazy(lambda: f"Response of '{endpoint}': {res}")

        if not isinstance(res, (dict, list, str)):
            return {}

        return res

    @log_func_call
    def create_invoice(
        self,
        description: str,
        amount_msat: int,
        expire_in: int,
        payment_preimage: str | None = None,
    ) -> JSONResponse:
        """
        Calls eclair createinvoice

        Creates a BOLT11 payment request. A preimage is generated by the node
        when none is given.
        """

        return self.call(
            "createinvoice",
            {
                "description": description,
                "amountMsat": amount_msat,
                "expireIn": expire_in,
                "paymentPreimage": payment_preimage,
            },
        )

    @log_func_call
    def pay_invoice(
        self,
        invoice: str,
        amount_msat: int,
        max_attempts: int,
        max_fee_pct: str,
        fee_threshold_sat: int,
    ) -> JSONResponse:
        """
        Calls eclair payinvoice

        Returns immediately with the id of the payment; the payment itself is
        settled asynchronously.
        """

        return self.call(
            "payinvoice",
            {
                "invoice": invoice,
                "amountMsat": amount_msat,
                "maxAttempts": max_attempts,
                "maxFeePct": max_fee_pct,
                "feeThresholdSat": fee_threshold_sat,
            },
        )

    @log_func_call
    def get_sent_info(
        self, id: str | None = None, payment_hash: str | None = None
    ) -> JSONResponse:
        """
        Calls eclair getsentinfo

        Returns all parts of an outgoing payment, identified either by the
        payment id or the payment hash.
        """

        if id is None and payment_hash is None:
            raise ValueError("Either 'id' or 'payment_hash' is required")

        return self.call("getsentinfo", {"id": id, "paymentHash": payment_hash})

    @log_func_call
    def parse_invoice(self, invoice: str) -> JSONResponse:
        """
        Calls eclair parseinvoice
        """

        return self.call("parseinvoice", {"invoice": invoice})

    @log_func_call
    def find_route(self, invoice: str, amount_msat: int) -> JSONResponse:
        """
        Calls eclair findroute

        Returns the node ids of a route to the payee of the invoice, including
        the local node.
        """

        return self.call("findroute", {"invoice": invoice, "amountMsat": amount_msat})

    @log_func_call
    def get_received_info(self, payment_hash: str) -> JSONResponse:
        """
        Calls eclair getreceivedinfo
        """

        return self.call("getreceivedinfo", {"paymentHash": payment_hash})

    @log_func_call
    def get_info(self) -> JSONResponse:
        """
        Calls eclair getinfo

        Returns general information about the node, e.g. its node id and the
        current block height.
        """

        return self.call("getinfo")
