from functools import wraps
from typing import Any, Awaitable, Callable


def _to_payload(value: Any):
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_payload(item) for item in value]
    return value


def async_cached(key_builder: Callable[..., Awaitable[str]]):
    """
    Decorator for service read methods. key_builder receives the same
    args/kwargs (including ``self``) and returns the versioned key.
    The wrapped method returns a CacheResult instead of its own value.
    Example:
      @async_cached(lambda self, task_id: self.keys.for_entity(task_id))
      async def get_task(self, task_id): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            key = await key_builder(self, *args, **kwargs)

            # loader closure calls the original function
            async def loader():
                value = await fn(self, *args, **kwargs)
                if value is None:
                    return None
                return _to_payload(value)

            return await self.cache.read_through(key, loader=loader)

        return wrapper

    return decorator


def async_invalidates(id_of: Callable[[Any], int]):
    """
    Decorator for service mutations. Once the wrapped method has returned
    (the write is committed) the task's scopes are advanced; id_of maps the
    method's result to the task id. Raised errors skip invalidation.
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(self, *args, **kwargs):
            result = await fn(self, *args, **kwargs)
            await self.invalidator.invalidate(id_of(result))
            return result

        return wrapper

    return decorator
