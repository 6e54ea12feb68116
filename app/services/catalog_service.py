"""商品目录服务（库存读取与扣减）"""

from sqlalchemy import select, update
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
import logging
from redis import Redis

from app.core.config import settings
from app.models.product import Product

logger = logging.getLogger(__name__)


def stock_cache_key(product_id: str) -> str:
    return f"stock:available:{product_id}"


class CatalogService:
    """商品目录服务类"""

    def __init__(self, db: Session, redis: Redis = None, cache_ttl: int = None):
        self.db = db
        self.redis = redis
        self.cache_ttl = cache_ttl or settings.STOCK_CACHE_TTL

    def get_product_by_id(self, product_id: str, for_update: bool = False) -> Optional[Product]:
        """按ID查询商品

        for_update=True 时加行级锁，并强制用数据库最新值刷新会话中的对象，
        同一事务里重复读取同一商品时能看到之前的扣减。
        """
        stmt = select(Product).where(Product.id == product_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_products(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        products = self.db.execute(
            select(Product).where(Product.id.in_(ids))
        ).scalars().all()
        return {p.id: p for p in products}

    def decrement_stock(self, product_id: str, amount: int) -> bool:
        """条件扣减库存：只有 stock >= amount 时才会更新

        返回 False 表示库存已被并发请求占用（或商品不存在），调用方负责回滚。
        """
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= amount)
            .values(stock=Product.stock - amount)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def get_product_stock(self, product_id: str) -> int:
        """查询商品可用库存（带缓存）"""
        cache_key = stock_cache_key(product_id)

        # 先查缓存
        if self.redis:
            cached = self.redis.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for product {product_id}")
                return int(cached)

        # 缓存未命中，查询数据库
        stock = self.db.execute(
            select(Product.stock).where(Product.id == product_id)
        ).scalar_one_or_none()
        available = stock if stock is not None else 0

        if self.redis:
            self.redis.setex(cache_key, self.cache_ttl, available)
            logger.debug(f"Cache set for product {product_id}: {available}")

        return available

    def batch_get_stocks(self, product_ids: List[str]) -> Dict[str, int]:
        """批量获取库存（带缓存优化）"""
        if not product_ids:
            return {}

        results = {}
        uncached_ids = []

        # 先查缓存
        if self.redis:
            cached_values = self.redis.mget([stock_cache_key(pid) for pid in product_ids])
            for pid, cached in zip(product_ids, cached_values):
                if cached is not None:
                    results[pid] = int(cached)
                    logger.debug(f"Batch cache hit for product {pid}")
                else:
                    uncached_ids.append(pid)
        else:
            uncached_ids = list(product_ids)

        # 查询未缓存的库存
        if uncached_ids:
            rows = self.db.execute(
                select(Product.id, Product.stock).where(Product.id.in_(uncached_ids))
            ).all()
            stock_map = {pid: stock for pid, stock in rows}

            pipe = self.redis.pipeline() if self.redis else None
            for pid in uncached_ids:
                available = stock_map.get(pid, 0)
                results[pid] = available
                if pipe is not None:
                    pipe.setex(stock_cache_key(pid), self.cache_ttl, available)

            if pipe is not None:
                pipe.execute()
                logger.debug(f"Batch cache set for {len(uncached_ids)} products")

        return results

    def invalidate_stock_cache(self, product_ids: Iterable[str]) -> None:
        if not self.redis:
            return
        keys = [stock_cache_key(pid) for pid in set(product_ids)]
        if keys:
            self.redis.delete(*keys)
            logger.debug(f"Cache invalidated for products {sorted(set(product_ids))}")
