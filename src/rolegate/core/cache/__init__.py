"""Cache plumbing shared by the permission cache backends.

Provides:
- Redis client construction and shutdown
- The JSON codec for cached snapshots
"""

from rolegate.core.cache.redis import close_redis_client, create_redis_client
from rolegate.core.cache.serializers import (
    decode_entry,
    deserialize,
    encode_entry,
    serialize,
)


__all__ = [
    "close_redis_client",
    "create_redis_client",
    "decode_entry",
    "deserialize",
    "encode_entry",
    "serialize",
]
