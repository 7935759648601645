"""Player tokens and the per-channel session registry, Redis-backed with in-memory fallback."""

import asyncio
import logging
from abc import ABC, abstractmethod

import redis.asyncio as redis
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from redis.exceptions import RedisError

from config import config

logger = logging.getLogger(__name__)


def _english_list(items: list[str]) -> str:
    if len(items) <= 2:
        return " and ".join(items)
    return f"{', '.join(items[:-1])}, and {items[-1]}"


class AlreadyPlaying(Exception):
    """Some identities are already in a round in this channel."""

    def __init__(self, channel_id: str, conflicts: list[str]) -> None:
        self.channel_id = channel_id
        self.conflicts = conflicts
        super().__init__(self.message())

    def message(self, requester: str | None = None) -> str:
        """Describe the conflict, addressing ``requester`` as "You"."""
        names = ["You" if c == requester else c for c in self.conflicts]
        verb = "is" if len(names) == 1 and names[0] != "You" else "are"
        return f"{_english_list(names)} {verb} already playing Blackjack in this channel!"


class PlayerTokenSigner:
    """Sign and verify player tokens using itsdangerous."""

    SALT = "player-token"

    def __init__(self, secret_key: str | None = None) -> None:
        """Initialize the signer with a secret key."""
        self._secret_key = secret_key or config.security.secret_key
        self._serializer = URLSafeTimedSerializer(self._secret_key, salt=self.SALT)

    def sign(self, channel_id: str, identity: str) -> str:
        """Create a token binding an identity to a channel."""
        return self._serializer.dumps({"channel": channel_id, "identity": identity})

    def unsign(self, token: str, max_age: int | None = None) -> tuple[str, str] | None:
        """
        Verify a token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to the configured token TTL)

        Returns:
            (channel_id, identity) if valid, None otherwise
        """
        max_age = max_age or config.security.token_ttl
        try:
            claims = self._serializer.loads(token, max_age=max_age)
        except (BadSignature, SignatureExpired):
            return None
        return claims["channel"], claims["identity"]


# Global signer instance
_token_signer: PlayerTokenSigner | None = None


def get_token_signer() -> PlayerTokenSigner:
    """Get or create the token signer."""
    global _token_signer
    if _token_signer is None:
        _token_signer = PlayerTokenSigner()
    return _token_signer


class SessionRegistry(ABC):
    """Which identities are playing in which channel."""

    @abstractmethod
    async def acquire(self, channel_id: str, identities: list[str]) -> None:
        """
        Mark identities as playing in a channel.

        Raises:
            AlreadyPlaying: if any of them already is; nothing is marked then
        """
        ...

    @abstractmethod
    async def release(self, channel_id: str, identities: list[str]) -> None:
        """Free identities in a channel."""
        ...

    @abstractmethod
    async def active(self, channel_id: str) -> set[str]:
        """Return the identities currently playing in a channel."""
        ...


class InMemorySessionRegistry(SessionRegistry):
    """In-memory registry for a single process."""

    def __init__(self) -> None:
        self._channels: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    async def acquire(self, channel_id: str, identities: list[str]) -> None:
        async with self._lock:
            current = self._channels.get(channel_id, set())
            conflicts = [i for i in identities if i in current]
            if conflicts:
                raise AlreadyPlaying(channel_id, conflicts)
            self._channels[channel_id] = current | set(identities)
        logger.debug("Acquired %s in channel %s", identities, channel_id)

    async def release(self, channel_id: str, identities: list[str]) -> None:
        async with self._lock:
            current = self._channels.get(channel_id)
            if current is None:
                return
            current.difference_update(identities)
            if not current:
                del self._channels[channel_id]
        logger.debug("Released %s in channel %s", identities, channel_id)

    async def active(self, channel_id: str) -> set[str]:
        return set(self._channels.get(channel_id, set()))


# Returns the conflicting members, adding all of ARGV only when there are none
_ACQUIRE_SCRIPT = """
local conflicts = {}
for _, identity in ipairs(ARGV) do
    if redis.call('SISMEMBER', KEYS[1], identity) == 1 then
        table.insert(conflicts, identity)
    end
end
if #conflicts == 0 then
    redis.call('SADD', KEYS[1], unpack(ARGV))
end
return conflicts
"""


class RedisSessionRegistry(SessionRegistry):
    """Redis-backed registry, one set per channel."""

    def __init__(self, redis_client: "redis.Redis") -> None:
        self._redis = redis_client
        self._prefix = "blackjack:channel:"
        self._acquire = self._redis.register_script(_ACQUIRE_SCRIPT)

    def _key(self, channel_id: str) -> str:
        """Get Redis key for a channel."""
        return f"{self._prefix}{channel_id}"

    async def acquire(self, channel_id: str, identities: list[str]) -> None:
        conflicts = await self._acquire(keys=[self._key(channel_id)], args=identities)
        if conflicts:
            raise AlreadyPlaying(
                channel_id,
                [c.decode() if isinstance(c, bytes) else c for c in conflicts],
            )
        logger.debug("Acquired %s in channel %s", identities, channel_id)

    async def release(self, channel_id: str, identities: list[str]) -> None:
        # Redis drops the set once its last member is removed
        await self._redis.srem(self._key(channel_id), *identities)
        logger.debug("Released %s in channel %s", identities, channel_id)

    async def active(self, channel_id: str) -> set[str]:
        members = await self._redis.smembers(self._key(channel_id))
        return {m.decode() if isinstance(m, bytes) else m for m in members}


# Global registry instance
_session_registry: SessionRegistry | None = None


async def get_session_registry() -> SessionRegistry:
    """Get or create the session registry."""
    global _session_registry

    if _session_registry is not None:
        return _session_registry

    if config.redis.enabled:
        try:
            redis_client = redis.from_url(config.redis.url)
            await redis_client.ping()
            _session_registry = RedisSessionRegistry(redis_client)
            return _session_registry
        except (RedisError, OSError) as e:
            logger.warning("Redis unavailable at %s, using in-memory registry: %s", config.redis.url, e)

    _session_registry = InMemorySessionRegistry()
    return _session_registry
