"""Celery 任务单元测试"""
import pytest
from decimal import Decimal
from unittest.mock import Mock, patch

from app.core.exceptions import InsufficientStock, TransactionFailed
from app.core.dependencies import get_redlock
from tasks.order_tasks import place_order

ITEMS = [
    {"product_id": "p1", "quantity": 2},
    {"product_id": "p2", "quantity": 1},
]


class TestOrderTasks:
    """订单 Celery 任务测试类"""

    @pytest.fixture(autouse=True)
    def no_lock_backend(self):
        """默认不连接真实的 Redlock 实例"""
        with patch('tasks.order_tasks.get_redlock', return_value=None):
            yield

    def test_place_order_success(self):
        """测试异步下单成功"""
        service_mock = Mock()
        service_mock.place_order.return_value = Mock(id="o1", total_price=Decimal("25.00"))
        db_mock = Mock()

        with patch('tasks.order_tasks.SessionLocal') as mock_session_local, \
             patch('tasks.order_tasks.OrderService') as mock_order_service, \
             patch('tasks.order_tasks.redis_client') as mock_redis, \
             patch('tasks.order_tasks.get_redlock') as mock_get_redlock:

            mock_session_local.return_value = db_mock
            mock_order_service.return_value = service_mock

            # 执行任务
            result = place_order("u1", ITEMS)

            # 验证结果
            assert result == {"success": True, "order_id": "o1", "total_price": 25.0}
            service_mock.place_order.assert_called_once_with("u1", ITEMS)
            assert mock_order_service.call_args.kwargs["source"] == "order_worker"
            assert mock_order_service.call_args.args[2] == mock_get_redlock.return_value
            db_mock.close.assert_called_once()

    def test_place_order_business_failure(self):
        """测试库存不足时返回失败结果且不重试"""
        service_mock = Mock()
        service_mock.place_order.side_effect = InsufficientStock("Widget", 5, 2)
        db_mock = Mock()

        with patch('tasks.order_tasks.SessionLocal') as mock_session_local, \
             patch('tasks.order_tasks.OrderService') as mock_order_service:

            mock_session_local.return_value = db_mock
            mock_order_service.return_value = service_mock

            result = place_order("u1", ITEMS)

            assert result == {
                "success": False,
                "code": "INSUFFICIENT_STOCK",
                "message": "Insufficient stock for Widget",
            }
            db_mock.close.assert_called_once()

    def test_place_order_transaction_failed_retries(self):
        """测试事务冲突时触发重试（直接调用时原样抛出）"""
        service_mock = Mock()
        service_mock.place_order.side_effect = TransactionFailed()
        db_mock = Mock()

        with patch('tasks.order_tasks.SessionLocal') as mock_session_local, \
             patch('tasks.order_tasks.OrderService') as mock_order_service:

            mock_session_local.return_value = db_mock
            mock_order_service.return_value = service_mock

            with pytest.raises(TransactionFailed):
                place_order("u1", ITEMS)

            db_mock.close.assert_called_once()

    def test_place_order_transaction_failed_retries_exhausted(self):
        """测试重试次数用完后返回失败结果"""
        service_mock = Mock()
        service_mock.place_order.side_effect = TransactionFailed()
        db_mock = Mock()

        with patch('tasks.order_tasks.SessionLocal') as mock_session_local, \
             patch('tasks.order_tasks.OrderService') as mock_order_service, \
             patch.object(place_order, 'max_retries', 0):

            mock_session_local.return_value = db_mock
            mock_order_service.return_value = service_mock

            result = place_order("u1", ITEMS)

            assert result["success"] is False
            assert result["code"] == "TRANSACTION_FAILED"

    def test_place_order_exception(self):
        """测试异步下单未知异常"""
        db_mock = Mock()

        with patch('tasks.order_tasks.SessionLocal') as mock_session_local, \
             patch('tasks.order_tasks.OrderService') as mock_order_service:

            mock_session_local.return_value = db_mock
            mock_order_service.side_effect = Exception("数据库错误")

            # 执行任务应该抛出异常
            with pytest.raises(Exception) as exc_info:
                place_order("u1", ITEMS)

            assert "数据库错误" in str(exc_info.value)
            db_mock.rollback.assert_called_once()
            db_mock.close.assert_called_once()

    def test_place_order_end_to_end(self, session_factory, widget, read_stock):
        """测试任务使用真实的订单服务下单"""
        with patch('tasks.order_tasks.SessionLocal', session_factory), \
             patch('tasks.order_tasks.redis_client', None), \
             patch('tasks.order_tasks.get_redlock', return_value=None):

            result = place_order("u1", [{"product_id": "p1", "quantity": 2}])

        assert result["success"] is True
        assert result["total_price"] == 20.0
        assert read_stock("p1") == 1

    def test_place_order_lock_backend_down(self, session_factory, widget, read_stock):
        """测试 Redlock 实例全部不可达时仍能依靠数据库行锁下单"""
        down_server = Mock()
        down_server.ping.side_effect = ConnectionError("Connection refused")
        lock_backend = Mock(servers=[down_server], quorum=1)

        with patch('tasks.order_tasks.get_redlock', get_redlock), \
             patch('app.core.dependencies.redlock', lock_backend), \
             patch('app.core.dependencies.settings') as mock_settings, \
             patch('tasks.order_tasks.SessionLocal', session_factory), \
             patch('tasks.order_tasks.redis_client', None):
            mock_settings.ORDER_LOCK_ENABLED = True

            result = place_order("u1", [{"product_id": "p1", "quantity": 1}])

        assert result["success"] is True
        assert read_stock("p1") == 2
        lock_backend.lock.assert_not_called()
