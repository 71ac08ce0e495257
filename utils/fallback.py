from typing import TypeVar, Callable
from functools import wraps

from utils.logger import setup_logger

logger = setup_logger(__name__)

T = TypeVar('T')


def with_fallback(
    fallback_func: Callable[..., T],
    exception_types: tuple = (Exception,),
    log_errors: bool = True
) -> Callable:
    """Return ``fallback_func(*args, **kwargs)`` when the wrapped call raises."""
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except exception_types as e:
                if log_errors:
                    logger.warning(
                        f"Function {func.__name__} failed, using fallback",
                        extra={
                            "function": func.__name__,
                            "error": str(e),
                            "fallback": getattr(fallback_func, "__name__", repr(fallback_func))
                        },
                        exc_info=True
                    )
                return fallback_func(*args, **kwargs)
        return wrapper
    return decorator


def empty_list(*args, **kwargs) -> list:
    return []
