"""
Thread-safe rate-limited logging utilities.

Best-effort components (fee oracle, gas estimation, sponsorship) report
degraded mode on every pipeline run; this keeps a flapping endpoint from
flooding the logs while still surfacing the first occurrence.
"""
import logging
import threading
import time
from typing import Optional

from cachetools import TTLCache

logger = logging.getLogger(__name__)

# Entries expire after one hour regardless of the per-call interval
_log_cache: TTLCache = TTLCache(maxsize=100, ttl=3600)
_log_cache_lock = threading.RLock()


def rate_limited_log(
    message: str,
    level: str = "warning",
    interval: int = 60,
    logger_instance: Optional[logging.Logger] = None,
    key: Optional[str] = None,
) -> bool:
    """
    Log a message at most once per ``interval`` seconds.

    Args:
        message: Message to log
        level: Log level (debug, info, warning, error, critical)
        interval: Minimum interval between identical logs in seconds
        logger_instance: Logger to use (defaults to module logger)
        key: Deduplication key; defaults to level and message

    Returns:
        True if the message was emitted, False if it was suppressed
    """
    log_instance = logger_instance or logger
    log_method = getattr(log_instance, level.lower(), log_instance.warning)
    cache_key = key or f"{level}:{message}"

    with _log_cache_lock:
        now = time.monotonic()
        last = _log_cache.get(cache_key)
        if last is not None and now - last < interval:
            return False
        log_method(message)
        _log_cache[cache_key] = now
        return True


def reset_rate_limits() -> None:
    """Forget all suppressed messages (for testing)"""
    with _log_cache_lock:
        _log_cache.clear()
