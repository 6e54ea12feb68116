"""测试配置和 fixtures"""
import os

# 导入 app 之前切换到 sqlite，避免单元测试依赖 PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from decimal import Decimal
from unittest.mock import Mock
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from redis import Redis
from redlock import Redlock

import app.models  # noqa: F401  注册全部模型
from app.db.base import Base
from app.models.product import Product


@pytest.fixture
def engine(tmp_path):
    """基于临时文件的 sqlite，多个会话可以同时连接"""
    engine = create_engine(f"sqlite:///{tmp_path / 'orders.db'}", echo=False)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    """创建数据库会话"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def mock_redis():
    """创建模拟 Redis 客户端"""
    redis_mock = Mock(spec=Redis)
    redis_mock.get.return_value = None
    redis_mock.setex.return_value = True
    redis_mock.delete.return_value = 1
    redis_mock.mget.return_value = [None, None]
    redis_mock.pipeline.return_value = Mock()
    return redis_mock


@pytest.fixture
def mock_redlock():
    """创建模拟 Redlock 分布式锁"""
    redlock_mock = Mock(spec=Redlock)
    lock_mock = Mock()
    redlock_mock.lock.return_value = lock_mock
    redlock_mock.unlock.return_value = True
    return redlock_mock


@pytest.fixture
def seed_products(db_session):
    """写入商品数据"""
    def _seed(*products):
        for data in products:
            db_session.add(Product(**data))
        db_session.commit()
    return _seed


@pytest.fixture
def widget(seed_products):
    """示例商品：Widget 单价 10.00，库存 3"""
    seed_products({
        "id": "p1",
        "name": "Widget",
        "description": "A sturdy widget",
        "price": Decimal("10.00"),
        "stock": 3,
    })
    return "p1"


@pytest.fixture
def read_stock(session_factory):
    """用新会话读取数据库中的最新库存"""
    def _read(product_id):
        with session_factory() as db:
            return db.execute(
                select(Product.stock).where(Product.id == product_id)
            ).scalar_one()
    return _read
