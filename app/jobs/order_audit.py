"""订单一致性巡检脚本

检查已提交订单的总价是否等于明细金额之和、是否存在无明细订单、商品库存是否为负。
"""

import argparse
import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.order import Order
from app.models.product import Product
from app.services.order_service import compute_total, to_decimal

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

def run_audit(db: Session = None, batch_size: int = 500) -> List[Dict[str, str]]:
    """执行巡检

    Args:
        db: 数据库会话，为空时自动创建
        batch_size: 每批读取的订单数量

    Returns:
        问题列表 [{"kind": ..., "id": ..., "detail": ...}]
    """
    own_session = db is None
    if own_session:
        db = SessionLocal()

    issues = []
    try:
        offset = 0
        while True:
            orders = db.execute(
                select(Order).order_by(Order.created_at, Order.id).offset(offset).limit(batch_size)
            ).scalars().all()
            if not orders:
                break

            for order in orders:
                if not order.items:
                    issues.append({
                        "kind": "EMPTY_ORDER",
                        "id": order.id,
                        "detail": "order has no line items",
                    })
                    continue

                expected = compute_total([(item.quantity, item.unit_price) for item in order.items])
                stored = to_decimal(order.total_price)
                if stored != expected:
                    issues.append({
                        "kind": "TOTAL_MISMATCH",
                        "id": order.id,
                        "detail": f"stored={stored}, expected={expected}",
                    })

            logger.debug(f"已检查 {offset + len(orders)} 条订单")
            if len(orders) < batch_size:
                break
            offset += batch_size

        negative = db.execute(
            select(Product.id, Product.stock).where(Product.stock < 0)
        ).all()
        for product_id, stock in negative:
            issues.append({
                "kind": "NEGATIVE_STOCK",
                "id": product_id,
                "detail": f"stock={stock}",
            })

        for issue in issues:
            logger.warning(f"巡检发现问题: {issue['kind']} id={issue['id']} {issue['detail']}")
        logger.info(f"巡检完成：发现 {len(issues)} 个问题")
        return issues
    finally:
        if own_session:
            db.close()

def main():
    """主函数"""
    parser = argparse.ArgumentParser(description='订单一致性巡检工具')
    parser.add_argument(
        '--batch-size',
        type=int,
        default=500,
        help='批处理大小 (默认: 500)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='详细输出模式'
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        issues = run_audit(batch_size=args.batch_size)
    except Exception as e:
        print(f"❌ 执行失败: {str(e)}")
        return 2

    if issues:
        print(f"⚠️  巡检发现 {len(issues)} 个问题")
        return 1

    print("✅ 巡检通过：未发现问题")
    return 0

if __name__ == "__main__":
    exit(main())
