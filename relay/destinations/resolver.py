"""
Destination Resolver
Loads an endpoint's forwarding policy from the mapping hashes kept in Redis
"""

from typing import Optional

import structlog
from redis.asyncio import Redis

from relay.models.destination import DestinationMapping

logger = structlog.get_logger(__name__)

MAPPING_KEY_PREFIX = "local_mapping:"


class DestinationResolver:
    """
    Resolves endpoint ids to destination mappings

    Mappings are written by the admin surface and only read here.
    """

    def __init__(self, redis: Redis, key_prefix: str = MAPPING_KEY_PREFIX):
        self._redis = redis
        self.key_prefix = key_prefix

    async def resolve(self, endpoint_id: str) -> Optional[DestinationMapping]:
        """
        Load the mapping for an endpoint

        Args:
            endpoint_id: Logical endpoint identifier

        Returns:
            The mapping, or None if the endpoint has none

        Raises:
            MappingError: If the stored mapping is malformed or names an unknown auth type
        """
        if not endpoint_id:
            return None

        data = await self._redis.hgetall(self.key_prefix + endpoint_id)
        if not data:
            return None

        mapping = DestinationMapping.from_hash(data)
        if not mapping.endpoint_id:
            mapping.endpoint_id = endpoint_id

        logger.debug(
            "Resolved destination",
            endpoint_id=endpoint_id,
            target_url=mapping.target_url,
            active=mapping.is_active,
        )
        return mapping
