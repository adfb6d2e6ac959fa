import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# 在应用启动前加载环境变量
load_dotenv()

from confdesk.core.middleware import ExceptionHandlerMiddleware, logger  # noqa: E402

_SENTRY_ENABLED = False
try:
    from confdesk.core.sentry_init import init_sentry

    _SENTRY_ENABLED = init_sentry()
    if _SENTRY_ENABLED:
        logger.info("[sentry] enabled")
except Exception as e:
    # 中文注释: 零崩溃原则: Sentry 任何异常不得阻塞启动
    logger.warning(f"[sentry] init failed (ignored): {e}")

from confdesk.api.v1 import decisions  # noqa: E402
from confdesk.api.v1.deps import get_decision_service  # noqa: E402


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 中文注释: 启动时组装一次服务（仓储/通知器），配置错误尽早暴露在日志里
    try:
        get_decision_service()
    except Exception as e:
        logger.error(f"[confdesk] decision service init failed: {e}")
    yield


app = FastAPI(
    title="confdesk API",
    description="Conference final-decision recording and author notification backend",
    version="1.0.0",
    lifespan=lifespan,
)


def _parse_frontend_origins() -> list[str]:
    """
    解析允许跨域的前端 Origins。

    中文注释:
    - 本地默认: http://localhost:3000
    - 生产/预发: 通过 FRONTEND_ORIGIN 或 FRONTEND_ORIGINS 注入（逗号分隔）
    """
    origins: list[str] = []

    single = (os.environ.get("FRONTEND_ORIGIN") or "").strip()
    if single:
        origins.append(single.rstrip("/"))

    many = (os.environ.get("FRONTEND_ORIGINS") or "").strip()
    for part in many.split(","):
        o = (part or "").strip().rstrip("/")
        if o:
            origins.append(o)

    if not origins:
        origins = ["http://localhost:3000"]

    # 去重保持顺序
    return list(dict.fromkeys(origins))


# === 中间件配置 ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_frontend_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ExceptionHandlerMiddleware)

# === 路由注册 ===
app.include_router(decisions.router, prefix="/api/v1")


@app.get("/")
async def root():
    return {"message": "confdesk API is running", "docs": "/docs"}
