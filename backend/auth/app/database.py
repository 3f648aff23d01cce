"""
Database Configuration and Session Management
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker, AsyncEngine
from sqlalchemy.orm import DeclarativeBase

from app.config import DATABASE_URL, DATA_DIR

if DATABASE_URL.startswith("sqlite") and str(DATA_DIR) in DATABASE_URL:
    DATA_DIR.mkdir(parents=True, exist_ok=True)


def use_immediate_transactions(engine: AsyncEngine) -> None:
    """
    SQLite 不支持 SELECT ... FOR UPDATE，
    改为事务开始即获取写锁，效果等同于行锁（串行化写事务）
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(url: str = DATABASE_URL) -> AsyncEngine:
    """创建异步引擎"""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False, connect_args={"timeout": 30})
        use_immediate_transactions(engine)
        return engine
    return create_async_engine(url, echo=False, pool_pre_ping=True)


# 创建异步引擎
engine = create_engine()

# 创建异步会话工厂
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """SQLAlchemy 声明式基类"""
    pass


async def get_db():
    """获取数据库会话的依赖"""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = None):
    """初始化数据库表"""
    # 导入所有模型以确保它们被注册
    from app.models import user, invitation  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db():
    """关闭数据库连接"""
    await engine.dispose()
