# utils/transient.py
import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError

from contest_hub.config import Settings
from contest_hub.errors import Transient

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_BASE_DELAY = 0.05


def _is_transient(exc: BaseException) -> bool:
	if isinstance(exc, (OperationalError, InterfaceError)):
		return True
	if isinstance(exc, DBAPIError):
		return bool(exc.connection_invalidated)
	return isinstance(exc, (TimeoutError, ConnectionError, OSError))


def transient(*, retry: bool = False) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
	"""
	Bound a storage call by ``Settings.request_timeout_seconds`` and turn driver
	or timeout failures into :class:`Transient`.

	With ``retry=True`` (idempotent calls only) the call is repeated
	``Settings.transient_retries`` more times, backing off exponentially from
	``RETRY_BASE_DELAY`` seconds, before the error is surfaced.
	"""
	def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
		@wraps(fn)
		async def wrapper(*args: Any, **kwargs: Any) -> T:
			settings = Settings()
			attempts = 1 + (settings.transient_retries if retry else 0)
			for attempt in range(1, attempts + 1):
				try:
					return await asyncio.wait_for(fn(*args, **kwargs), timeout=settings.request_timeout_seconds)
				except Exception as exc:
					if not _is_transient(exc):
						raise
					if attempt < attempts:
						logger.warning("Transient failure in %s (attempt %d/%d): %r", fn.__qualname__, attempt, attempts, exc)
						await asyncio.sleep(RETRY_BASE_DELAY * 2 ** (attempt - 1))
						continue
					logger.error("Giving up on %s after %d attempt(s): %r", fn.__qualname__, attempts, exc)
					raise Transient("The service is temporarily unavailable. Please try again.") from exc
			raise AssertionError("unreachable")
		return wrapper
	return decorator
