"""
Auth Service - FastAPI Application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from common.auth_filter import PublicEndpoints, install_auth_filter
from common.errors import register_exception_handlers
from common.roles import UserRole
from common.session_cache import session_cache
from app.config import CORS_ORIGINS
from app.database import init_db, close_db, async_session_factory
from app.api.auth import router as auth_router
from app.api.users import router as users_router
from app.api.invitation_codes import router as invitation_codes_router
from app.services.auth_service import auth_service
from app.utils.phone import mask_phone

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def create_initial_admin():
    """创建初始超级管理员"""
    from app.services.user_service import user_service
    from app.config import (
        INITIAL_ADMIN_PHONE,
        INITIAL_ADMIN_PASSWORD,
        INITIAL_ADMIN_NICKNAME
    )

    async with async_session_factory() as db:
        try:
            # 检查是否已有用户
            count = await user_service.count(db)
            if count > 0:
                logger.info(f"数据库已有 {count} 个用户，跳过初始化")
                return

            admin = await user_service.insert(
                db,
                phone=INITIAL_ADMIN_PHONE,
                password=INITIAL_ADMIN_PASSWORD,
                role=UserRole.SUPER_ADMIN,
                nickname=INITIAL_ADMIN_NICKNAME
            )
            await db.commit()

            logger.info(f"超级管理员已创建: userId={admin.id}, phone={mask_phone(admin.phone)}")
            logger.warning("请使用初始密码登录后尽快修改密码!")

        except Exception as e:
            logger.error(f"创建初始管理员失败: {e}")
            await db.rollback()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时
    logger.info("初始化数据库...")
    await init_db()

    logger.info("检查初始管理员...")
    await create_initial_admin()

    logger.info("Auth 服务启动完成")
    yield

    # 关闭时
    await close_db()
    logger.info("Auth 服务关闭")


# 创建应用
app = FastAPI(
    title="Auth Service",
    description="销售平台认证服务 - 注册登录、角色层级、邀请码",
    version="1.0.0",
    lifespan=lifespan
)

# 认证过滤器：只绑定身份，不拦截
install_auth_filter(
    app,
    auth_service.codec,
    PublicEndpoints.from_settings(),
    session_cache
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# 注册路由
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(invitation_codes_router)


@app.get("/")
async def root():
    """服务信息"""
    return {
        "service": "Auth Service",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health():
    """健康检查端点"""
    return {"status": "healthy"}
