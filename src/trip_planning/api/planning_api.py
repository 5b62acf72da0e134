# ==========================================================
# 📦 src/trip_planning/api/planning_api.py
# ==========================================================

import json
import sys

import numpy as np
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger

from trip_planning.config.settings import get_log_level
from trip_planning.domain.errors import (
    InvariantViolationError,
    PlanningNotFoundError,
    PlanningValidationError,
    PlanStoreError,
)
from .routes import router as planning_router

load_dotenv()

logger.remove()
logger.add(
    sys.stdout,
    level=get_log_level(),
    colorize=True,
    format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
)

app = FastAPI(
    title="Trip Planning API",
    description="City plans, walkable clusters and item placement",
    version="1.0.0",
    openapi_url="/openapi.json",
    docs_url="/docs",
)

# ==========================================================
# 🌍 CORS
# ==========================================================
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================================
# 🧹 JSON sanitizing middleware (NaN / Inf → null)
# ==========================================================
@app.middleware("http")
async def sanitize_json_response(request: Request, call_next):
    response = await call_next(request)

    if "application/json" in response.headers.get("content-type", ""):
        raw_body = b"".join([chunk async for chunk in response.body_iterator])
        try:
            content = json.loads(raw_body)
        except ValueError:
            logger.warning(f"⚠️ Non-JSON body on {request.url.path}, returned as is")
            return Response(content=raw_body, status_code=response.status_code, headers=dict(response.headers))

        def clean(obj):
            if isinstance(obj, dict):
                return {k: clean(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [clean(i) for i in obj]
            elif isinstance(obj, float):
                if np.isnan(obj) or np.isinf(obj):
                    return None
                return obj
            else:
                return obj

        return JSONResponse(content=clean(content), status_code=response.status_code)

    return response


# ==========================================================
# ❌ Error mapping
# ==========================================================
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"⚠️ {request.method} {request.url.path} | invalid payload")
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(PlanningValidationError)
async def validation_error_handler(request: Request, exc: PlanningValidationError):
    logger.warning(f"⚠️ {request.method} {request.url.path} | {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(PlanningNotFoundError)
async def not_found_handler(request: Request, exc: PlanningNotFoundError):
    logger.warning(f"🔎 {request.method} {request.url.path} | {exc}")
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PlanStoreError)
@app.exception_handler(InvariantViolationError)
async def store_error_handler(request: Request, exc: Exception):
    logger.error(f"❌ {request.method} {request.url.path} | {exc}")
    return JSONResponse(status_code=500, content={"detail": "Failed to update the plan"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"❌ Unexpected error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# ==========================================================
# 🔀 Routes
# ==========================================================
app.include_router(planning_router, prefix="/planning")


# ==========================================================
# 🩺 Health check
# ==========================================================
@app.get("/", tags=["Status"])
def root():
    return {"status": "Trip Planning API online 🚀"}


def main():
    uvicorn.run("trip_planning.api.planning_api:app", host="0.0.0.0", port=8000)


# ==========================================================
# 🚀 Standalone (dev)
# ==========================================================
if __name__ == "__main__":
    main()
