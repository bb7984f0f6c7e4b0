"""
Хранилище черновиков мастера бронирования.
Черновик хранится с TTL и удаляется после завершения или сброса.
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Union

from loguru import logger
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from booking_flow.states import BookingFlowState
from config.settings import settings


class FlowStorage(ABC):
    """Единый интерфейс хранения черновика, по реализации на среду"""

    @staticmethod
    def _key(user_id: Union[int, str]) -> str:
        return f"booking_flow:{user_id}"

    @staticmethod
    def _decode(user_id: Union[int, str], raw) -> Optional[BookingFlowState]:
        if not raw:
            return None
        try:
            return BookingFlowState.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Повреждённый черновик бронирования {user_id}: {e}")
            return None

    @abstractmethod
    async def save(self, user_id: Union[int, str], state: BookingFlowState) -> None:
        ...

    @abstractmethod
    async def load(self, user_id: Union[int, str]) -> Optional[BookingFlowState]:
        ...

    @abstractmethod
    async def clear(self, user_id: Union[int, str]) -> None:
        ...


class RedisFlowStorage(FlowStorage):
    def __init__(self, redis: Redis, ttl: int = settings.flow_ttl_seconds):
        self.redis = redis
        self.ttl = ttl

    async def save(self, user_id, state: BookingFlowState) -> None:
        await self.redis.setex(self._key(user_id), self.ttl, state.model_dump_json())

    async def load(self, user_id) -> Optional[BookingFlowState]:
        value = await self.redis.get(self._key(user_id))
        return self._decode(user_id, value)

    async def clear(self, user_id) -> None:
        await self.redis.delete(self._key(user_id))

    async def close(self) -> None:
        await self.redis.aclose()


class MemoryFlowStorage(FlowStorage):
    """Хранилище в памяти процесса (без TTL)"""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def save(self, user_id, state: BookingFlowState) -> None:
        self._data[self._key(user_id)] = state.model_dump_json()

    async def load(self, user_id) -> Optional[BookingFlowState]:
        return self._decode(user_id, self._data.get(self._key(user_id)))

    async def clear(self, user_id) -> None:
        self._data.pop(self._key(user_id), None)


async def create_flow_storage(redis_url: str = settings.redis_url) -> FlowStorage:
    """Redis, если доступен, иначе память"""
    try:
        redis_client = Redis.from_url(redis_url)
        await redis_client.ping()
        logger.info("✅ Подключение к Redis успешно")
        return RedisFlowStorage(redis_client)
    except (RedisError, OSError) as e:
        logger.warning(f"⚠️ Redis недоступен ({e}), используем MemoryFlowStorage")
        return MemoryFlowStorage()
