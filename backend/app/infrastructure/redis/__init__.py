"""
Redis Infrastructure Module

Connection pooling and the exception hierarchy for the cache store.
"""

from .connection_factory import RedisConnectionFactory
from .exceptions import (
    RedisException,
    RedisConnectionException,
    RedisOperationTimeoutException,
    RedisSerializationException,
    RedisConfigurationException,
)

__all__ = [
    "RedisConnectionFactory",
    # Exceptions
    "RedisException",
    "RedisConnectionException",
    "RedisOperationTimeoutException",
    "RedisSerializationException",
    "RedisConfigurationException",
]
