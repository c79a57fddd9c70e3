"""HTTP API exposing the aggregated token list."""

import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from wallet_token_aggregator.core.errors import InvalidIdentityError, ProviderError, TokenAggregatorError
from wallet_token_aggregator.core.models import AggregatedToken
from wallet_token_aggregator.service import TokenService

logger = logging.getLogger(__name__)


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": f"Failed to fetch tokens: {exc}"})


def create_app(
    service: TokenService,
    *,
    cors_allow_origins: Sequence[str] = ("*",),
    start_refresh_in_background: bool = True,
) -> FastAPI:
    """
    Create the FastAPI application.

    The price cache is loaded and the bulk price refresh started when the
    application starts; clients are closed when it shuts down.

    Parameters
    ----------
    service : TokenService
        Collaborators serving the token endpoint
    cors_allow_origins : Sequence[str]
        Origins allowed to call the API
    start_refresh_in_background : bool
        Run the startup refresh on a daemon thread instead of blocking startup

    Returns
    -------
    FastAPI
        Configured application

    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        service.start(background=start_refresh_in_background)
        try:
            yield
        finally:
            service.close()

    app = FastAPI(title="Wallet Token Aggregator", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_allow_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.exception_handler(InvalidIdentityError)
    async def invalid_identity_handler(request: Request, exc: InvalidIdentityError) -> JSONResponse:
        logger.warning("Token endpoint error for %s: %s", request.url.path, exc)
        return _error_response(400, exc)

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError) -> JSONResponse:
        logger.error("Token endpoint error for %s: %s", request.url.path, exc)
        return _error_response(502, exc)

    @app.exception_handler(TokenAggregatorError)
    async def aggregator_error_handler(request: Request, exc: TokenAggregatorError) -> JSONResponse:
        logger.error("Token endpoint error for %s: %s", request.url.path, exc)
        return _error_response(500, exc)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error for %s", request.url.path, exc_info=exc)
        return _error_response(500, exc)

    @app.get("/api/tokens/{wallet}", response_model=list[AggregatedToken])
    def get_tokens(wallet: str) -> list[AggregatedToken]:
        """Aggregated, priced token balances for an address or ENS name."""
        return service.aggregator.get_tokens(wallet)

    @app.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "cached_prices": len(service.price_cache),
            "top_tokens": len(service.top_tokens),
        }

    return app
