import logging
import time
import traceback
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000

class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request; server errors and slow requests are raised to WARNING"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client = request.client.host if request.client else "unknown"
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.time() - start_time) * 1000
            logger.error(
                f"{client} {request.method} {target} - Unhandled {type(e).__name__}: {e} "
                f"after {elapsed_ms:.2f}ms\n{traceback.format_exc()}"
            )
            # FastAPI turns the re-raised exception into the 500 response
            raise

        elapsed_ms = (time.time() - start_time) * 1000
        level = logging.INFO
        if response.status_code >= 500 or elapsed_ms >= SLOW_REQUEST_MS:
            level = logging.WARNING

        logger.log(level, f"{client} {request.method} {target} - {response.status_code} in {elapsed_ms:.2f}ms")
        return response
