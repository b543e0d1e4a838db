"""
Abstract base classes for the three stages of a chunk-oriented step.

A step pulls items from an ItemReader one at a time, optionally passes each
through an ItemProcessor, and hands every chunk of survivors to an
ItemWriter in a single call.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ingestion.step_context import StepContext


class ItemReader(ABC):
    """
    Source of items for one step.

    Responsibilities:
    - Acquire resources in ``open`` (files, query results)
    - Return one item per ``read`` call and ``None`` once exhausted
    - Raise a SkippableError for a single unreadable item, anything else
      for an unrecoverable source
    """

    async def open(self, context: "StepContext") -> None:
        """Called once before the first read"""

    @abstractmethod
    async def read(self) -> Optional[Any]:
        """Return the next item, or None at end of input"""
        pass

    async def close(self, context: "StepContext") -> None:
        """Called once after the step ends, whatever its outcome"""


class ItemProcessor(ABC):
    """Per-item transformation; returning None filters the item out."""

    @abstractmethod
    async def process(self, item: Any, context: "StepContext") -> Optional[Any]:
        pass


class ItemWriter(ABC):
    """
    Sink receiving one whole chunk per ``write`` call.

    Writers stage their own counters on the context (``context.stage``);
    the engine keeps them when the chunk commits and drops them when it
    rolls back.
    """

    async def open(self, context: "StepContext") -> None:
        """Called once before the first chunk"""

    @abstractmethod
    async def write(self, items: List[Any], context: "StepContext") -> None:
        pass

    async def close(self, context: "StepContext") -> None:
        """Called once after the step ends, whatever its outcome"""
