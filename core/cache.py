"""
Caching of catalog lists (departments, modalities, resource sources) using Redis
with fallback to in-memory caching.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List

from core import config
from core.redis_client import get_redis_client, is_redis_available

logger = logging.getLogger(__name__)


class CatalogCache:
    """Cache for the serialized catalog tables."""

    def __init__(self, ttl: int = config.CATALOG_CACHE_TTL):
        self._memory_cache: Dict[str, Any] = {}
        self._cache_time: Dict[str, datetime] = {}
        self._ttl = ttl

    @staticmethod
    def _models():
        from database import DepartmentDB, BiddingModalityDB, ResourceSourceDB
        return {
            'departments': (DepartmentDB, DepartmentDB.id),
            'modalities': (BiddingModalityDB, BiddingModalityDB.id),
            'sources': (ResourceSourceDB, ResourceSourceDB.code),
        }

    def get_catalog(self, db, kind: str) -> List[Dict[str, Any]]:
        """Return the serialized rows of a catalog table, served from cache when fresh."""
        cache_key = f'catalog:{kind}'

        redis_client = get_redis_client()
        if redis_client and is_redis_available():
            try:
                cached = redis_client.get(cache_key)
                if cached:
                    return json.loads(cached)
            except Exception as e:
                logger.warning(f"⚠ Redis cache retrieval failed: {e}, checking in-memory")

        if cache_key in self._memory_cache:
            cache_age = (datetime.now() - self._cache_time[cache_key]).total_seconds()
            if cache_age < self._ttl:
                return self._memory_cache[cache_key]

        model, order_by = self._models()[kind]
        rows = [row.to_dict() for row in db.query(model).order_by(order_by).all()]

        if redis_client and is_redis_available():
            try:
                redis_client.setex(cache_key, self._ttl, json.dumps(rows))
            except Exception as e:
                logger.warning(f"⚠ Redis cache storage failed: {e}")

        self._memory_cache[cache_key] = rows
        self._cache_time[cache_key] = datetime.now()
        return rows

    def invalidate(self, kind: str) -> None:
        """Invalidate one catalog (call after writes to that table)."""
        cache_key = f'catalog:{kind}'

        redis_client = get_redis_client()
        if redis_client and is_redis_available():
            try:
                redis_client.delete(cache_key)
            except Exception as e:
                logger.warning(f"⚠ Redis cache invalidation failed: {e}")

        self._memory_cache.pop(cache_key, None)
        self._cache_time.pop(cache_key, None)

    def clear(self) -> None:
        for kind in self._models():
            self.invalidate(kind)


# Global instance
catalog_cache = CatalogCache()
