"""依赖注入单元测试"""
import pytest
from unittest.mock import Mock, patch
from fastapi import HTTPException
from sqlalchemy.orm import Session
from redis import Redis
from redlock import Redlock

from app.core.dependencies import (
    get_db,
    get_redis,
    get_redlock,
    get_current_user_id,
    get_fulfillment_user_id,
    get_order_service,
    get_catalog_service,
)
from app.services.catalog_service import CatalogService
from app.services.order_service import OrderService


class TestDependencies:
    """依赖注入测试类"""

    def test_get_db(self):
        """测试数据库会话依赖"""
        with patch('app.core.dependencies.SessionLocal') as mock_session_local:
            db_mock = Mock(spec=Session)
            mock_session_local.return_value = db_mock

            # 获取生成器
            gen = get_db()
            db = next(gen)

            assert db == db_mock
            mock_session_local.assert_called_once()

            # 测试清理
            gen.close()
            db_mock.close.assert_called_once()

    def test_get_redis_success(self):
        """测试 Redis 连接成功"""
        with patch('app.core.dependencies.redis_client') as mock_redis_client:
            mock_redis_client.ping.return_value = True

            redis_conn = get_redis()

            assert redis_conn == mock_redis_client
            mock_redis_client.ping.assert_called_once()

    def test_get_redis_failure(self):
        """测试 Redis 连接失败"""
        with patch('app.core.dependencies.redis_client') as mock_redis_client:
            mock_redis_client.ping.side_effect = Exception("连接失败")

            redis_conn = get_redis()

            # 连接失败应该返回 None
            assert redis_conn is None

    def test_get_redlock_success(self):
        """测试 Redlock 已配置"""
        with patch('app.core.dependencies.redlock') as mock_redlock, \
             patch('app.core.dependencies.settings') as mock_settings:
            mock_redlock.servers = [Mock()]  # 模拟有服务器配置
            mock_redlock.quorum = 1
            mock_settings.ORDER_LOCK_ENABLED = True

            rlock = get_redlock()

            assert rlock == mock_redlock
            mock_redlock.servers[0].ping.assert_called_once()

    def test_get_redlock_servers_unreachable(self):
        """测试 Redlock 实例不可达时退化为无分布式锁"""
        with patch('app.core.dependencies.redlock') as mock_redlock, \
             patch('app.core.dependencies.settings') as mock_settings:
            down_server = Mock()
            down_server.ping.side_effect = ConnectionError("Connection refused")
            mock_redlock.servers = [down_server]
            mock_redlock.quorum = 1
            mock_settings.ORDER_LOCK_ENABLED = True

            assert get_redlock() is None
            mock_redlock.lock.assert_not_called()

    def test_get_redlock_below_quorum(self):
        """测试多实例模式下可达实例不足 quorum"""
        with patch('app.core.dependencies.redlock') as mock_redlock, \
             patch('app.core.dependencies.settings') as mock_settings:
            up_server = Mock()
            down_server = Mock()
            down_server.ping.side_effect = ConnectionError("Connection refused")
            mock_redlock.servers = [up_server, down_server, down_server]
            mock_redlock.quorum = 2
            mock_settings.ORDER_LOCK_ENABLED = True

            assert get_redlock() is None

    def test_get_redlock_no_servers(self):
        """测试 Redlock 无服务器配置"""
        with patch('app.core.dependencies.redlock') as mock_redlock, \
             patch('app.core.dependencies.settings') as mock_settings:
            mock_redlock.servers = []  # 模拟无服务器配置
            mock_settings.ORDER_LOCK_ENABLED = True

            # 无服务器配置应该返回 None
            assert get_redlock() is None

    def test_get_redlock_disabled(self):
        """测试关闭分布式锁"""
        with patch('app.core.dependencies.redlock') as mock_redlock, \
             patch('app.core.dependencies.settings') as mock_settings:
            mock_redlock.servers = [Mock()]
            mock_settings.ORDER_LOCK_ENABLED = False

            assert get_redlock() is None

    def test_get_current_user_id(self):
        """测试读取网关传入的用户ID"""
        assert get_current_user_id(" u1 ") == "u1"

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_get_current_user_id_missing(self, value):
        """测试缺少用户ID"""
        with pytest.raises(HTTPException) as exc_info:
            get_current_user_id(value)

        assert exc_info.value.status_code == 401

    def test_get_fulfillment_user_id(self):
        """测试管理员角色可以推进订单状态"""
        assert get_fulfillment_user_id("admin1", " Admin ") == "admin1"

    @pytest.mark.parametrize("role", [None, "", "customer"])
    def test_get_fulfillment_user_id_forbidden(self, role):
        """测试非管理员角色被拒绝"""
        with pytest.raises(HTTPException) as exc_info:
            get_fulfillment_user_id("u1", role)

        assert exc_info.value.status_code == 403

    def test_get_order_service(self):
        """测试订单服务依赖注入"""
        db_mock = Mock(spec=Session)
        redis_mock = Mock(spec=Redis)
        redlock_mock = Mock(spec=Redlock)

        service = get_order_service(db=db_mock, redis=redis_mock, rlock=redlock_mock)

        assert isinstance(service, OrderService)
        assert service.db == db_mock
        assert service.redis == redis_mock
        assert service.rlock == redlock_mock
        assert service.catalog.redis == redis_mock

    def test_get_order_service_partial_deps(self):
        """测试部分依赖不可用时的服务创建"""
        db_mock = Mock(spec=Session)

        service = get_order_service(db=db_mock, redis=None, rlock=None)

        assert isinstance(service, OrderService)
        assert service.db == db_mock
        assert service.redis is None
        assert service.rlock is None

    def test_get_catalog_service(self):
        """测试商品目录服务依赖注入"""
        db_mock = Mock(spec=Session)

        service = get_catalog_service(db=db_mock, redis=None)

        assert isinstance(service, CatalogService)
        assert service.db == db_mock
        assert service.redis is None
