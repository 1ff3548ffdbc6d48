"""
SajuGraph - Main App
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
사주 원국 → 사실 그래프 → 다중 방법 용신 / 격국
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sajugraph.config import get_settings
from sajugraph.services.engine import ENGINE_NAME, ENGINE_VERSION

settings = get_settings()

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# App 선언
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
app = FastAPI(title="SajuGraph", version=ENGINE_VERSION, debug=settings.debug)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {"service": "SajuGraph", "status": "running", "engine": ENGINE_NAME, "version": ENGINE_VERSION}


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# 라우터 등록
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
try:
    from sajugraph.routers import analyze
    app.include_router(analyze.router, prefix="/api/v1", tags=["Analyze"])
    logger.info("✅ analyze 라우터 등록 (/api/v1/analyze, /presets, /graph)")
except Exception as e:
    logger.error(f"❌ analyze 라우터 등록 실패: {e}")
    raise


@app.exception_handler(Exception)
async def error_handler(request: Request, exc: Exception):
    logger.exception(f"Error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error_code": "INTERNAL_ERROR", "message": str(exc)[:100]},
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
