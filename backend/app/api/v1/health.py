r"""backend\app\api\v1\health.py

Health check endpoints.

These endpoints can be used by orchestrators and load balancers to verify
that the service is running.  A simple GET request to `/api/v1/health`
returns a JSON payload with status information, including whether a Gemini
key is configured for forecast generation.
"""

from fastapi import APIRouter

from ...core.config import get_settings

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, object]:
    """Return a basic health indicator."""
    settings = get_settings()
    return {
        "status": "ok",
        "llm_configured": bool(settings.gemini_api_key),
        "model": settings.gemini_model,
    }
