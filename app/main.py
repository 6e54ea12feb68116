from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy import text

from app.core.config import settings
from app.core.exceptions import OrderError
from app.db import init_db
from app.db.session import engine
from app.schemas.base import HealthCheckResponse, APIInfoResponse
from app.core.redis import async_redis
from app.routers import order_router, product_router

import uvicorn

# 配置日志
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # 应用启动时的初始化
    logger.info("Starting application...")

    # 数据库连接检查
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
        init_db()
        logger.info("✅ Database tables ready")
    except Exception as e:
        logger.error("❌ Database connection failed: %s", e)
        raise

    # Redis 连接检查
    try:
        await async_redis.ping()
        logger.info("✅ Redis connected successfully")
    except Exception as e:
        logger.warning(f"⚠️  Redis connection failed: {e}")
        logger.warning("⚠️  Application will run without stock caching")

    yield

    # 应用关闭时的清理
    logger.info("Shutting down application...")
    await async_redis.aclose()

# 创建 FastAPI 应用
app = FastAPI(
    title="订单服务 API",
    description="下单与库存预占服务，保证下单全部成功或全部失败",
    version="1.0.0",
    lifespan=lifespan
)

# 添加 CORS 中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境中应该指定具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(order_router.router, prefix="/api/v1")
app.include_router(product_router.router, prefix="/api/v1")

# 全局异常处理
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation error: {exc}")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "message": "请求参数验证失败",
            "details": jsonable_encoder(exc.errors())
        }
    )

@app.exception_handler(OrderError)
async def order_exception_handler(request: Request, exc: OrderError):
    logger.warning(f"Order error: {exc.status_code} - {exc.code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "code": exc.code,
            "errors": exc.errors
        }
    )

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"HTTP error: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "message": exc.detail,
            "detail": exc.detail
        }
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "服务器内部错误"
        }
    )

# 健康检查端点
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """健康检查接口"""
    return {
        "status": "healthy",
        "service": "order-service",
        "version": "1.0.0"
    }

@app.get("/", response_model=APIInfoResponse)
async def read_root():
    """API 根路径"""
    return {
        "message": "欢迎使用订单服务",
        "docs": "/docs",
        "health": "/health"
    }




if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
