import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
	"""Outcome of one awaitable joined by gather_settled"""

	value: Optional[T] = None
	error: Optional[BaseException] = None

	@property
	def ok(self) -> bool:
		return self.error is None

	def value_or(self, default: T) -> T:
		return self.value if self.ok else default


async def gather_settled(**awaitables: Awaitable[Any]) -> Dict[str, Settled]:
	"""
	Run every awaitable concurrently and wait until all of them settle.

	Never raises on partial failure: each name maps to a Settled holding
	either the value or the exception. Cancellation still propagates.
	"""
	names = list(awaitables)
	results = await asyncio.gather(*awaitables.values(), return_exceptions=True)

	settled: Dict[str, Settled] = {}
	for name, result in zip(names, results):
		if isinstance(result, asyncio.CancelledError):
			raise result
		if isinstance(result, BaseException):
			logger.warning(f"Source '{name}' failed: {result!r}")
			settled[name] = Settled(error=result)
		else:
			settled[name] = Settled(value=result)
	return settled
