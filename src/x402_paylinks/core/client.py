"""
HTTP client helpers for a running payment-link service.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional

import requests

from .config import ServiceConfig

__all__ = [
    "LinkStatus",
    "PaymentLinksClient",
    "ServiceResponseError",
    "VerificationOutcome",
]

_DEFAULT_TIMEOUT = 30


class ServiceResponseError(RuntimeError):
    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


def _decode(response: requests.Response, url: str) -> Dict[str, Any]:
    try:
        return response.json()
    except (json.JSONDecodeError, ValueError) as exc:
        raise ServiceResponseError(
            response.status_code,
            f"Failed to parse JSON from payment-link service at {url}: {response.text}",
        ) from exc


def _call(
    session: requests.Session,
    method: str,
    url: str,
    *,
    expected: Iterable[int] = (200,),
    timeout: float = _DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> requests.Response:
    response = session.request(method, url, timeout=timeout, **kwargs)
    if response.status_code not in tuple(expected):
        raise ServiceResponseError(
            response.status_code,
            f"Payment-link service responded with {response.status_code}: {response.text}",
        )
    return response


@dataclass(frozen=True)
class LinkStatus:
    """
    What a payer sees when opening a link: ``402`` with instructions, ``200``
    once settled, or ``410`` after the deadline.
    """

    status_code: int
    headers: Dict[str, str]
    raw: Dict[str, Any]

    @property
    def paid(self) -> bool:
        return self.status_code == 200

    @property
    def expired(self) -> bool:
        return self.status_code == 410

    @property
    def payment(self) -> Optional[Dict[str, Any]]:
        return self.raw.get("payment")

    @classmethod
    def from_response(cls, response: requests.Response, payload: Dict[str, Any]) -> "LinkStatus":
        headers = {
            key: value for key, value in response.headers.items() if key.lower().startswith("x-payment-")
        }
        return cls(status_code=response.status_code, headers=headers, raw=payload)


@dataclass(frozen=True)
class VerificationOutcome:
    success: bool
    status_code: int
    reason: Optional[str]
    retryable: bool
    raw: Dict[str, Any]

    @classmethod
    def from_response(cls, status_code: int, payload: Dict[str, Any]) -> "VerificationOutcome":
        verification = payload.get("verification") or {}
        return cls(
            success=bool(payload.get("success")),
            status_code=status_code,
            reason=payload.get("reason") or verification.get("reason"),
            retryable=bool(payload.get("retryable")),
            raw=payload,
        )


class PaymentLinksClient:
    """
    Thin convenience wrapper around the ``/api`` endpoints.
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        if base_url is None:
            base_url = (config or ServiceConfig()).service_url
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def create(
        self,
        *,
        token: str,
        amount: Any,
        receiver: str,
        payer: Optional[str] = None,
        description: Optional[str] = None,
        network: Optional[str] = None,
        expires_in_days: Optional[int] = None,
        creator_wallet: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"token": token, "amount": str(amount), "receiver": receiver}
        optional: Mapping[str, Any] = {
            "payer": payer,
            "description": description,
            "network": network,
            "expiresInDays": expires_in_days,
            "creatorWallet": creator_wallet,
        }
        body.update({key: value for key, value in optional.items() if value is not None})

        url = self._url("create")
        logging.info("Creating payment request at %s", url)
        response = _call(self.session, "POST", url, expected=(201,), json=body, timeout=self.timeout)
        return _decode(response, url)

    def status(self, request_id: str) -> LinkStatus:
        url = self._url(f"request/{request_id}")
        response = _call(self.session, "GET", url, expected=(200, 402, 410), timeout=self.timeout)
        return LinkStatus.from_response(response, _decode(response, url))

    def verify(self, request_id: str, tx_hash: str) -> VerificationOutcome:
        """
        Submit ``tx_hash`` for ``request_id``.

        Rejections (``400``) and inconclusive checks (``503``) come back as a
        :class:`VerificationOutcome`; anything else unexpected raises.
        """
        url = self._url("verify")
        logging.info("Submitting tx %s for request %s to %s", tx_hash, request_id, url)
        response = _call(
            self.session,
            "POST",
            url,
            expected=(200, 400, 503),
            json={"requestId": request_id, "txHash": tx_hash},
            timeout=self.timeout,
        )
        return VerificationOutcome.from_response(response.status_code, _decode(response, url))

    def list(self, wallet: Optional[str] = None) -> List[Dict[str, Any]]:
        url = self._url("requests")
        params = {"wallet": wallet} if wallet else None
        response = _call(self.session, "GET", url, params=params, timeout=self.timeout)
        return list(_decode(response, url).get("requests") or [])

    def delete(self, request_id: str) -> Dict[str, Any]:
        url = self._url(f"request/{request_id}")
        response = _call(self.session, "DELETE", url, timeout=self.timeout)
        return _decode(response, url)

    def health(self) -> Dict[str, Any]:
        url = self._url("health")
        response = _call(self.session, "GET", url, timeout=self.timeout)
        return _decode(response, url)
