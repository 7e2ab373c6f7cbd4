"""
TradeDesk FastAPI application.

Thin HTTP surface over the market data gateway for the dashboard front end.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable, Optional

from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..data.models import RequestSuperseded, TotalFailure
from ..gateway.gateway import MarketDataGateway
from .config import Settings, get_settings
from .deps import create_gateway, get_gateway, get_logger
from .models import ErrorResponse, HealthResponse, ListResponse, QuotesResponse


def _service_state(status: dict) -> str:
    if not status.get("configured"):
        return "missing_key"
    return "healthy" if status.get("healthy") else "degraded"


def create_app(
    settings: Optional[Settings] = None,
    gateway_factory: Optional[Callable[[Settings], MarketDataGateway]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Application settings (defaults to environment settings)
        gateway_factory: Builds the gateway at startup (defaults to ``create_gateway``)
    """
    settings = settings or get_settings()
    gateway_factory = gateway_factory or create_gateway

    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper()), format=settings.log_format
    )
    app_logger = get_logger(__name__, settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown."""
        app_logger.info(f"Starting {settings.app_name} application...")
        gateway = gateway_factory(settings)
        await gateway.start()
        app.state.gateway = gateway
        try:
            yield
        finally:
            app_logger.info(f"Shutting down {settings.app_name} application...")
            await gateway.stop()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description=settings.app_description,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(ValueError)
    async def value_error_handler(request, exc):
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="Invalid input", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(TotalFailure)
    async def total_failure_handler(request, exc):
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(
                error="Market data unavailable",
                detail=str(exc),
                errors=[e.to_dict() for e in exc.errors],
            ).model_dump(),
        )

    @app.exception_handler(RequestSuperseded)
    async def superseded_handler(request, exc):
        return JSONResponse(
            status_code=409,
            content=ErrorResponse(error="Request superseded", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        app_logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal server error",
                detail="An unexpected error occurred" if not settings.debug else str(exc),
            ).model_dump(),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health_check(gateway: MarketDataGateway = Depends(get_gateway)):
        """Health check endpoint."""
        health = gateway.get_health_status()
        services = {name: _service_state(status) for name, status in health["providers"].items()}
        return HealthResponse(
            status="healthy" if health["overall_healthy"] else "degraded",
            version=settings.app_version,
            timestamp=datetime.now(timezone.utc).isoformat(),
            services=services,
            providers=health["providers"],
            cache=health["cache"],
        )

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "description": settings.app_description,
            "health": "/health",
        }

    @app.get(f"{settings.api_prefix}/quotes", response_model=QuotesResponse)
    async def get_quotes(
        symbols: str = Query(..., description="Comma-separated symbols"),
        gateway: MarketDataGateway = Depends(get_gateway),
    ):
        """Get quotes for several symbols."""
        requested = [s for s in symbols.split(",") if s.strip()]
        if not requested:
            raise ValueError("symbols must not be empty")
        response = await gateway.get_quotes(requested)
        return QuotesResponse(**response.to_dict())

    @app.get(f"{settings.api_prefix}/chart/{{symbol}}", response_model=ListResponse)
    async def get_chart(
        symbol: str,
        interval: str = Query("1d"),
        range: str = Query("1mo"),
        panel: Optional[str] = Query(None, description="Chart panel id for supersession"),
        gateway: MarketDataGateway = Depends(get_gateway),
    ):
        """Get OHLCV history for a symbol."""
        points = await gateway.get_chart(symbol, interval=interval, range_=range, panel=panel)
        return ListResponse(data=[p.to_dict() for p in points])

    @app.get(f"{settings.api_prefix}/news/{{symbol}}", response_model=ListResponse)
    async def get_news(
        symbol: str,
        name: Optional[str] = Query(None, description="Company display name"),
        gateway: MarketDataGateway = Depends(get_gateway),
    ):
        """Get recent news for a symbol."""
        items = await gateway.get_news(symbol, display_name=name)
        return ListResponse(data=[n.to_dict() for n in items])

    @app.get(f"{settings.api_prefix}/search", response_model=ListResponse)
    async def search(
        q: str = Query("", description="Symbol or company name"),
        gateway: MarketDataGateway = Depends(get_gateway),
    ):
        """Search symbols and return quotes for the matches."""
        quotes = await gateway.search_symbols(q)
        return ListResponse(data=[quote.to_dict() for quote in quotes])

    @app.get(f"{settings.api_prefix}/market/status")
    async def market_status(gateway: MarketDataGateway = Depends(get_gateway)):
        """Get exchange session status."""
        return {"success": True, "data": gateway.get_market_status().to_dict()}

    return app


app = create_app()
