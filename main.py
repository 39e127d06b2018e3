"""
FastAPI应用主入口
"""
from fastapi import FastAPI
from contextlib import asynccontextmanager

from api.routes import payments as payments_routes
from api.middleware import RequestIDMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.settings import payment_settings
from core.logging_config import get_logger, configure_logging


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    cfg = payment_settings.razorpay
    if not (cfg.key_id and cfg.key_secret):
        logger.warning(
            "payment_provider_unconfigured",
            provider=payment_settings.default_provider,
            message="RAZORPAY__KEY_ID / RAZORPAY__KEY_SECRET not set; payment routes will fail",
        )
    if not cfg.webhook_secret:
        logger.warning(
            "payment_webhook_secret_missing",
            message="RAZORPAY__WEBHOOK_SECRET not set; webhook signatures are not verified",
        )
    logger.info("application_startup", environment=settings.ENVIRONMENT)
    yield
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Razorpay payment session adapter",
)

# Request ID 中间件（为日志提供 request_id）
app.add_middleware(RequestIDMiddleware)

# 注册全局异常处理器
register_exception_handlers(app)

# 注册路由
app.include_router(payments_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
