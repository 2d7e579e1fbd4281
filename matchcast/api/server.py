"""FastAPI application serving cached data and operator endpoints.

Provides HTTP endpoints for:
- /api/* - Cached fixtures, match data, predictions and league statistics
- /admin/* - Generation trigger, run status, prediction listing, cache sweep
- /health, /ready, /live - Dependency checks and probes
- /metrics - Prometheus metrics in text format

Read endpoints never generate predictions; generation only happens in
runs started by the scheduler, the CLI or /admin/generate-predictions.
Handlers that only touch the cache are plain functions, which FastAPI
runs in its threadpool.

Usage:
    from matchcast.api.server import create_app
    app = create_app(config, cache, controller, data_service,
                     league_stats_service, orchestrator_factory)
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional, Set

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from matchcast.health.checks import HealthChecker, HealthStatus
from matchcast.models.cache import CacheCategory
from matchcast.models.config import AppConfig
from matchcast.observability.context import correlation_id_context, new_correlation_id
from matchcast.observability.metrics import get_metrics_content_type, get_metrics_text
from matchcast.orchestration.orchestrator import PredictionOrchestrator
from matchcast.orchestration.status import GenerationController
from matchcast.services.cache_service import CacheService
from matchcast.services.football.data_service import FootballDataService
from matchcast.services.football.league_stats import LeagueStatsService

logger = structlog.get_logger()

API_TITLE = "Matchcast API"
API_VERSION = "1.0.0"
REQUEST_ID_HEADER = "X-Request-ID"


class PredictRequest(BaseModel):
    fixture_id: Optional[int] = None


def _error(status_code: int, error: str, **extra: Any) -> JSONResponse:
    return JSONResponse(content={"error": error, **extra}, status_code=status_code)


def create_app(
    config: AppConfig,
    cache: CacheService,
    controller: GenerationController,
    data_service: FootballDataService,
    league_stats_service: LeagueStatsService,
    orchestrator_factory: Callable[[], PredictionOrchestrator],
    checker: Optional[HealthChecker] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Application configuration
        cache: Shared cache service
        controller: Single-flight generation controller
        data_service: Fixture and match data collaborator
        league_stats_service: League statistics collaborator
        orchestrator_factory: Builds an orchestrator for a generation run
        checker: Health checker (default: built from config and cache)

    Returns:
        Configured FastAPI application
    """
    checker = checker or HealthChecker(config, cache)
    background: Set["asyncio.Task[Any]"] = set()

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover
        logger.info("api_server_starting", leagues=config.enabled_leagues)
        yield
        for task in list(background):
            task.cancel()
        logger.info("api_server_stopping")

    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description="Cached football data and AI match predictions",
        lifespan=lifespan,
    )

    @app.middleware("http")
    async def scope_request_id(request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_correlation_id("http")
        with correlation_id_context(request_id):
            response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    # ==================== Public API ====================

    @app.get("/api/fixtures/{league}", response_model=None)
    async def get_fixtures(league: str) -> Response:
        league = league.lower()
        if league not in config.leagues:
            return _error(
                status.HTTP_404_NOT_FOUND,
                "Unknown league",
                league=league,
                available=sorted(config.leagues),
            )

        try:
            fixtures = await data_service.get_upcoming_fixtures(league)
        except Exception as e:
            logger.error("fixtures_request_failed", league=league, error=str(e))
            return _error(status.HTTP_502_BAD_GATEWAY, "Failed to fetch fixtures")

        return JSONResponse(
            content={
                "league": league,
                "count": len(fixtures),
                "fixtures": [f.model_dump(mode="json") for f in fixtures],
            }
        )

    @app.get("/api/match-data/{fixture_id}", response_model=None)
    async def get_match_data(fixture_id: int) -> Response:
        """Cached match data, else fetched for an upcoming fixture and cached."""
        endpoint = f"match-data/{fixture_id}"
        data = await asyncio.to_thread(cache.get_match_data, fixture_id)
        if data is not None:
            await asyncio.to_thread(cache.log_call, endpoint, success=True, cached=True)
            return JSONResponse(content={"fixture_id": fixture_id, "data": data})

        try:
            fixture = await data_service.find_upcoming_fixture(fixture_id)
            if fixture is not None:
                data = await data_service.get_comprehensive_match_data(fixture)
        except Exception as e:
            logger.error("match_data_request_failed", fixture_id=fixture_id, error=str(e))
            await asyncio.to_thread(cache.log_call, endpoint, success=False, cached=False)
            return _error(
                status.HTTP_502_BAD_GATEWAY,
                "Failed to fetch match data",
                fixture_id=fixture_id,
            )

        if data is None:
            await asyncio.to_thread(cache.log_call, endpoint, success=False, cached=False)
            return _error(
                status.HTTP_404_NOT_FOUND,
                "Match data not available",
                fixture_id=fixture_id,
            )

        await asyncio.to_thread(cache.set_match_data, fixture_id, data)
        await asyncio.to_thread(cache.log_call, endpoint, success=True, cached=False)
        return JSONResponse(content={"fixture_id": fixture_id, "data": data})

    def _prediction_response(fixture_id: int) -> JSONResponse:
        prediction = cache.get_prediction(fixture_id)
        found = prediction is not None
        cache.log_call(f"prediction/{fixture_id}", success=found, cached=found)

        if not found:
            return _error(
                status.HTTP_404_NOT_FOUND,
                "Prediction not available yet",
                message="Predictions are generated daily. Please check back later.",
                generated=False,
                fixture_id=fixture_id,
            )
        return JSONResponse(
            content={"prediction": prediction, "generated": True, "cached": True}
        )

    @app.get("/api/predictions/{fixture_id}", response_model=None)
    def get_prediction(fixture_id: int) -> Response:
        return _prediction_response(fixture_id)

    @app.post("/api/predict", response_model=None)
    def predict(body: PredictRequest) -> Response:
        if body.fixture_id is None:
            return _error(status.HTTP_400_BAD_REQUEST, "fixture_id is required")
        return _prediction_response(body.fixture_id)

    @app.get("/api/league-stats/{league}", response_model=None)
    async def get_league_stats(league: str) -> Response:
        league = league.lower()
        if league not in config.leagues:
            return _error(status.HTTP_404_NOT_FOUND, "Unknown league", league=league)

        stats = await league_stats_service.get_league_stats(league)
        if stats is None:
            return _error(
                status.HTTP_404_NOT_FOUND,
                "League statistics not available",
                league=league,
            )
        return JSONResponse(content={"league": league, "stats": stats})

    @app.get("/api/stats", response_model=None)
    def get_stats() -> Dict[str, Any]:
        return cache.get_stats().model_dump(mode="json")

    @app.post("/api/clear-cache", response_model=None)
    def clear_cache() -> Response:
        try:
            cache.clear_all()
        except Exception as e:
            logger.error("clear_cache_failed", error=str(e))
            return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to clear cache")
        return JSONResponse(content={"success": True, "message": "Cache cleared"})

    # ==================== Admin ====================

    @app.post("/admin/generate-predictions", response_model=None)
    async def generate_predictions() -> Response:
        if not controller.try_start():
            return _error(
                status.HTTP_429_TOO_MANY_REQUESTS,
                "Prediction generation already in progress",
                status=controller.get_status(),
            )

        try:
            orchestrator = orchestrator_factory()
        except Exception as e:
            controller.abort(str(e))
            logger.error("generation_setup_failed", error=str(e))
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to start generation"
            )

        task = asyncio.create_task(controller.execute(orchestrator))
        background.add(task)
        task.add_done_callback(background.discard)

        logger.info("generation_triggered_manually")
        return JSONResponse(
            content={"success": True, "message": "Prediction generation started"},
            status_code=status.HTTP_202_ACCEPTED,
        )

    @app.get("/admin/generation-status", response_model=None)
    async def generation_status() -> Dict[str, Any]:
        return controller.get_status()

    @app.get("/admin/predictions", response_model=None)
    def list_predictions() -> Dict[str, Any]:
        entries = cache.list_entries(CacheCategory.PREDICTION)
        return {"total": len(entries), "predictions": entries}

    @app.post("/admin/sweep", response_model=None)
    def sweep() -> Dict[str, Any]:
        return {"removed": cache.sweep_expired()}

    # ==================== Health ====================

    @app.get(
        "/health",
        response_model=None,
        responses={
            200: {"description": "All checks passed"},
            503: {"description": "One or more checks failed"},
        },
    )
    async def health_check() -> Response:
        """Returns 200 if healthy/degraded, 503 if unhealthy."""
        report = await checker.check_all()

        status_code = (
            status.HTTP_200_OK
            if report.status != HealthStatus.UNHEALTHY
            else status.HTTP_503_SERVICE_UNAVAILABLE
        )
        content = report.to_dict()
        content["generation"] = controller.get_status()
        return JSONResponse(content=content, status_code=status_code)

    @app.get("/ready", response_model=None)
    async def readiness_probe() -> Response:
        if await checker.is_ready():
            return JSONResponse(
                content={"ready": True, "message": "Service is ready"},
                status_code=status.HTTP_200_OK,
            )
        return JSONResponse(
            content={"ready": False, "message": "Service is not ready"},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    @app.get("/live", response_model=None)
    async def liveness_probe() -> Response:
        is_alive = await checker.is_alive()
        return JSONResponse(
            content={"alive": is_alive, "message": "Service is alive"},
            status_code=status.HTTP_200_OK,
        )

    @app.get("/metrics", response_class=PlainTextResponse)
    async def prometheus_metrics() -> Response:
        return Response(content=get_metrics_text(), media_type=get_metrics_content_type())

    @app.get("/", response_model=None)
    async def root() -> Dict[str, Any]:
        return {
            "name": API_TITLE,
            "version": API_VERSION,
            "leagues": config.enabled_leagues,
            "endpoints": {
                "fixtures": "/api/fixtures/{league}",
                "match_data": "/api/match-data/{fixture_id}",
                "predictions": "/api/predictions/{fixture_id}",
                "predict": "/api/predict",
                "league_stats": "/api/league-stats/{league}",
                "stats": "/api/stats",
                "generation_status": "/admin/generation-status",
                "health": "/health",
                "metrics": "/metrics",
            },
        }

    return app


async def run_server_async(  # pragma: no cover
    app: FastAPI,
    host: str = "0.0.0.0",
    port: int = 3001,
    log_level: str = "info",
) -> None:
    """Serve an application until uvicorn is asked to stop."""
    import uvicorn

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level,
        access_log=True,
    )
    server = uvicorn.Server(config)

    logger.info("api_server_listening", host=host, port=port)
    await server.serve()
