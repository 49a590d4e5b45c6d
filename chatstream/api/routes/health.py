"""Liveness, provider health and Prometheus metrics."""

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from chatstream.api.dependencies import GatewayDep, RegistryDep
from chatstream.core.config.constants import ProviderRole
from chatstream.core.observability import MetricsCollector

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request, registry: RegistryDep):
    settings = request.app.state.settings
    return {
        "status": "healthy" if registry.accepting else "shutting_down",
        "version": settings.app.APP_VERSION,
        "environment": settings.app.ENVIRONMENT,
        "active_streams": registry.active_count,
    }


@router.get("/health/providers")
async def provider_health(gateway: GatewayDep):
    """503 when the primary provider is unreachable; a down fallback only degrades."""
    providers = await gateway.health_check()
    if not providers[ProviderRole.PRIMARY.value]:
        status, code = "unhealthy", 503
    elif all(providers.values()):
        status, code = "healthy", 200
    else:
        status, code = "degraded", 200
    return JSONResponse(status_code=code, content={"status": status, "providers": providers})


@router.get("/metrics", include_in_schema=False)
async def metrics():
    content, content_type = MetricsCollector.export()
    return Response(content=content, media_type=content_type)
