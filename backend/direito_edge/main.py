from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware
from direito_edge.api import batch_jobs, generation, system_health
from direito_edge.core.config import settings
from direito_edge.core.logging import log_request, setup_logging
import logging
import time
import traceback

# Configurar logging estruturado
setup_logging(level=settings.LOG_LEVEL, json_logs=settings.JSON_LOGS)
logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address, default_limits=["200/minute"])

app = FastAPI(
    title="Direito Premium - Edge API",
    description="Geração de conteúdo com fallback entre chaves de API e processamento em lote",
    version="1.0.0"
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Middleware para garantir CORS em todas as respostas (incluindo erros)
class CORSErrorMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"Unhandled exception: {str(e)}\n{traceback.format_exc()}")
            response = JSONResponse(
                status_code=500,
                content={"detail": f"Internal server error: {str(e)}"}
            )

        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "authorization, x-client-info, apikey, content-type"

        return response


app.add_middleware(CORSErrorMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000
    log_request(
        logger,
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration_ms, 2),
        ip_address=request.client.host if request.client else None
    )

    return response


app.include_router(system_health.router)
app.include_router(generation.router)
app.include_router(batch_jobs.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Application starting up", extra={'event': 'startup'})
