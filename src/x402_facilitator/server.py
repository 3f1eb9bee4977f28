"""
FastAPI application exposing the facilitator over HTTP
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from x402_facilitator import __version__
from x402_facilitator.chain.base import ChainClients
from x402_facilitator.facilitator import Facilitator
from x402_facilitator.outcome import (
    HTTP_BAD_REQUEST,
    http_status_for,
    to_settle_response,
    to_verify_response,
)
from x402_facilitator.types import ErrorResponse, SettleRequest, VerifyRequest

logger = logging.getLogger(__name__)

INVALID_REQUEST = "Invalid request"


def _invalid_request() -> JSONResponse:
    return JSONResponse(
        status_code=HTTP_BAD_REQUEST,
        content=ErrorResponse(error=INVALID_REQUEST).model_dump(),
    )


def create_app(
    facilitator: Facilitator,
    chain_clients: Optional[ChainClients] = None,
    cors_origins: Optional[list[str]] = None,
) -> FastAPI:
    """
    Build the facilitator HTTP application.

    Args:
        facilitator: Facilitator serving the requests
        chain_clients: Chain clients to close on shutdown
        cors_origins: Allowed CORS origins (default: any)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await facilitator.close()
        if chain_clients is not None:
            await chain_clients.close()

    app = FastAPI(
        title="X402 Facilitator",
        description="Facilitator service for X402 payment protocol",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.info("Rejected undecodable %s body: %s", request.url.path, exc.errors())
        return _invalid_request()

    @app.get("/")
    async def root() -> dict[str, Any]:
        """Service info endpoint"""
        supported = facilitator.supported()
        return {
            "service": "X402 Facilitator",
            "version": __version__,
            "status": "running",
            "networks": sorted({kind.network for kind in supported.kinds}),
        }

    @app.get("/verify")
    async def verify_info() -> dict[str, Any]:
        """Describe the /verify endpoint"""
        return {
            "endpoint": "/verify",
            "description": "POST to verify x402 payments",
            "body": {
                "paymentPayload": "PaymentPayload",
                "paymentRequirements": "PaymentRequirements",
            },
        }

    @app.post("/verify")
    async def verify(request: VerifyRequest) -> JSONResponse:
        """
        Verify payment payload

        Args:
            request: Verify request with payment payload and requirements

        Returns:
            Verification result
        """
        outcome = await facilitator.verify(request)
        status = http_status_for(outcome)
        if status == HTTP_BAD_REQUEST:
            return _invalid_request()
        body = to_verify_response(outcome).model_dump(by_alias=True, exclude_none=True)
        return JSONResponse(status_code=status, content=body)

    @app.get("/settle")
    async def settle_info() -> dict[str, Any]:
        """Describe the /settle endpoint"""
        return {
            "endpoint": "/settle",
            "description": "POST to settle x402 payments",
            "body": {
                "paymentPayload": "PaymentPayload",
                "paymentRequirements": "PaymentRequirements",
            },
        }

    @app.post("/settle")
    async def settle(request: SettleRequest) -> JSONResponse:
        """
        Settle payment on-chain

        Args:
            request: Settle request with payment payload and requirements

        Returns:
            Settlement result with transaction hash
        """
        outcome = await facilitator.settle(request)
        status = http_status_for(outcome)
        if status == HTTP_BAD_REQUEST:
            return _invalid_request()
        body = to_settle_response(outcome).model_dump(by_alias=True, exclude_none=True)
        return JSONResponse(status_code=status, content=body)

    @app.get("/supported")
    async def supported() -> dict[str, Any]:
        """Get supported capabilities"""
        return facilitator.supported().model_dump(by_alias=True)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return facilitator.supported().model_dump(by_alias=True)

    return app
