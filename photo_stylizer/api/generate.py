"""HTTP surface of the secure generation proxy."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from ..core.proxy import SecureProxy, CORS_HEADERS
from ..utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

# Every verb reaches the proxy so it can answer 405 in its own shape
ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


@router.api_route("/generate-image", methods=ALL_METHODS)
async def generate_image(request: Request):
    """Forward {imageData, prompt} to the image model."""
    proxy: SecureProxy = request.app.state.proxy

    body = None
    if request.method == "POST":
        try:
            body = await request.json()
        except ValueError:
            logger.warning(
                "Request body is not valid JSON",
                extra={"content_type": request.headers.get("content-type")}
            )

    result = await proxy.handle(request.method, body)

    if result.body is None:
        return Response(status_code=result.status_code, headers=CORS_HEADERS)

    return JSONResponse(
        content=result.body,
        status_code=result.status_code,
        headers=CORS_HEADERS,
    )
