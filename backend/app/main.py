"""
HMS 主应用入口
住房管理系统：住户账号、商品订单、账单台账、报修、通知与 PDF 文档
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.config import settings
from app.database import init_db
from app.housing.errors import HousingError
from app.routers import auth, grocery, invoices, maintenance, notifications, pdf

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 初始化数据库
    init_db()

    # 注册通知渠道
    from app.system.notification import register_notification_channels
    registry = register_notification_channels()
    logger.info(f"Notification channels: {registry.status()}")

    # 注册事件处理器
    from app.services.event_handlers import register_event_handlers
    register_event_handlers()

    yield


# 创建应用
app = FastAPI(
    title="HMS - 住房管理系统",
    description="住户账号、商品订单、账单、报修与通知",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HousingError)
async def housing_error_handler(request: Request, exc: HousingError):
    """领域错误统一转换为 HTTP 响应"""
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "error": type(exc).__name__},
    )


# 注册路由
app.include_router(auth.router)
app.include_router(grocery.router)
app.include_router(invoices.router)
app.include_router(maintenance.router)
app.include_router(notifications.router)
app.include_router(pdf.router)


@app.get("/")
def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
