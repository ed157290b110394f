"""
FastAPI application exposing the payment-link lifecycle under ``/api``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Sequence, Union

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.middleware.cors import CORSMiddleware

from .core.errors import PaymentLinkError, ValidationError, VerificationInconclusiveError
from .core.lifecycle import PaymentLinkService, RequestState
from .core.payloads import build_listing_entry, build_settled_view

__all__ = ["build_app"]

logger = logging.getLogger(__name__)

Number = Union[str, int, float]


class CreateRequestBody(BaseModel):
    token: Optional[str] = None
    amount: Optional[Number] = None
    receiver: Optional[str] = None
    payer: Optional[str] = None
    description: Optional[str] = None
    network: Optional[str] = None
    expiresInDays: Optional[Number] = None
    creatorWallet: Optional[str] = None


class VerifyBody(BaseModel):
    requestId: Optional[str] = None
    txHash: Optional[str] = None


def get_service(request: Request) -> PaymentLinkService:
    return request.app.state.service


router = APIRouter(prefix="/api")


@router.post("/create", status_code=201)
async def create_request(
    body: CreateRequestBody,
    service: PaymentLinkService = Depends(get_service),
) -> Dict[str, Any]:
    request = await service.create_request(
        token=body.token,
        amount=body.amount,
        receiver=body.receiver,
        payer=body.payer,
        description=body.description,
        network=body.network,
        expires_in_days=body.expiresInDays,
        creator_wallet=body.creatorWallet,
    )
    return {"success": True, "id": request.id, "link": service.link_for(request.id)}


@router.get("/request/{request_id}")
async def read_request(request_id: str, service: PaymentLinkService = Depends(get_service)):
    view = await service.describe(request_id)
    if view.state is RequestState.PAID:
        return {"success": True, "status": view.request.status.value, "request": view.settled()}

    advertisement = view.payment_required()
    return JSONResponse(
        status_code=advertisement.status_code,
        content=advertisement.body,
        headers=advertisement.headers,
    )


@router.post("/verify")
async def verify_payment(body: VerifyBody, service: PaymentLinkService = Depends(get_service)):
    if not body.requestId or not body.txHash:
        raise ValidationError("Missing required fields: requestId and txHash are required")

    submission = await service.submit_payment(body.requestId, body.txHash)
    verdict = submission.verdict
    if not submission.accepted:
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": verdict.message,
                "reason": verdict.reason.value if verdict.reason else None,
                "details": verdict.details,
                "verification": verdict.to_dict(),
            },
        )

    return {
        "success": True,
        "status": submission.request.status.value,
        "request": build_settled_view(submission.request),
        "verification": verdict.to_dict() if verdict is not None else None,
    }


@router.get("/requests")
async def list_requests(
    wallet: Optional[str] = None,
    service: PaymentLinkService = Depends(get_service),
) -> Dict[str, Any]:
    requests = await service.list_requests(wallet)
    now = service.now()
    entries = [build_listing_entry(request, now) for request in requests]
    return {"success": True, "requests": entries, "count": len(entries)}


@router.delete("/request/{request_id}")
async def delete_request(
    request_id: str,
    service: PaymentLinkService = Depends(get_service),
) -> Dict[str, Any]:
    await service.delete_request(request_id)
    return {"success": True, "message": "Payment request deleted", "id": request_id}


@router.get("/health")
async def health(service: PaymentLinkService = Depends(get_service)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "store": service.store.backend_name,
        "defaultNetwork": service.default_network,
    }


async def _payment_link_error(request: Request, exc: PaymentLinkError) -> JSONResponse:
    headers = None
    if isinstance(exc, VerificationInconclusiveError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, **exc.to_dict()},
        headers=headers,
    )


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request body", "details": messages},
    )


def build_app(
    service: PaymentLinkService,
    *,
    cors_origins: Sequence[str] = ("*",),
    title: str = "x402 Payment Links",
) -> FastAPI:
    """
    Build the HTTP application around an already-assembled service.

    The store is opened on startup and closed, together with the RPC
    readers, on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.store.open()
        logger.info("Payment-link service started with %s store", service.store.backend_name)
        try:
            yield
        finally:
            await service.engine.readers.aclose()
            await service.store.close()
            logger.info("Payment-link service stopped")

    app = FastAPI(title=title, lifespan=lifespan)
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Payment-Scheme",
            "X-Payment-Amount",
            "X-Payment-Token",
            "X-Payment-Network",
            "X-Payment-Receiver",
            "Retry-After",
        ],
    )
    app.add_exception_handler(PaymentLinkError, _payment_link_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.include_router(router)
    return app
