"""Ordered fallback over a list of strategies.

Each strategy is tried in turn; the first non-empty result wins. A strategy
that raises is logged and skipped. A strategy that does not apply raises
StrategySkipped and is not counted as attempted. Only when every strategy
that ran raised does the run fail.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

from alignzo.exceptions import UpstreamError

logger = structlog.get_logger()

T = TypeVar("T")

Strategy = Callable[..., Awaitable[Sequence[T]]]


class StrategySkipped(Exception):
    """Raised by a strategy that does not apply to its arguments."""


@dataclass
class WaterfallResult(Generic[T]):
    items: list[T]
    strategy: str | None
    attempted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


async def run_waterfall(
    strategies: Sequence[tuple[str, Strategy]],
    *args: Any,
    service: str = "waterfall",
    **kwargs: Any,
) -> WaterfallResult:
    """Evaluate ``(name, strategy)`` pairs in order, stopping at the first hit.

    If some strategies ran but all came back empty the result is empty with
    ``strategy`` None, as it is when every strategy skipped. If every
    strategy that ran raised, UpstreamError is raised.
    """
    attempted: list[str] = []
    failed: dict[str, str] = {}

    for name, strategy in strategies:
        try:
            items = list(await strategy(*args, **kwargs))
        except StrategySkipped:
            logger.debug("waterfall_strategy_skipped", service=service, strategy=name)
            continue
        except Exception as e:
            attempted.append(name)
            failed[name] = str(e)
            logger.warning("waterfall_strategy_failed", service=service, strategy=name, error=str(e))
            continue

        attempted.append(name)
        if items:
            logger.info("waterfall_strategy_matched", service=service, strategy=name, count=len(items))
            return WaterfallResult(items=items, strategy=name, attempted=attempted, failed=failed)

    if attempted and len(failed) == len(attempted):
        raise UpstreamError(service, f"All {len(failed)} strategies failed")

    return WaterfallResult(items=[], strategy=None, attempted=attempted, failed=failed)
