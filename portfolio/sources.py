"""
Prioritized providers tried in order until one succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, TypeVar

from portfolio.errors import ApiAuthError, PortfolioError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SourceResult(Generic[T]):
    source: str
    ok: bool
    value: Optional[T] = None
    reason: str = ""
    # A fatal failure stops the waterfall instead of falling through.
    fatal: bool = False

    @classmethod
    def success(cls, source: str, value: T) -> "SourceResult[T]":
        return cls(source=source, ok=True, value=value)

    @classmethod
    def failure(
        cls, source: str, reason: str, *, fatal: bool = False
    ) -> "SourceResult[T]":
        return cls(source=source, ok=False, reason=reason, fatal=fatal)


@dataclass(frozen=True)
class Source(Generic[T]):
    """A named provider. ``remote`` marks results worth mirroring locally."""

    name: str
    call: Callable[[], T]
    remote: bool = False
    # Accept an empty successful result instead of treating it as a miss.
    accept_empty: bool = False
    # A rejected admin password ends the run instead of falling through.
    stop_on_auth: bool = False

    def run(self) -> SourceResult[T]:
        try:
            return SourceResult.success(self.name, self.call())
        except ApiAuthError as exc:
            return SourceResult.failure(
                self.name, str(exc) or "Unauthorized", fatal=self.stop_on_auth
            )
        except PortfolioError as exc:
            return SourceResult.failure(self.name, str(exc) or type(exc).__name__)


def is_present(value) -> bool:
    """Default acceptance test: anything but ``None`` and empty containers."""
    if value is None:
        return False
    if isinstance(value, (dict, list, str)):
        return len(value) > 0
    return True


def waterfall(
    sources: Iterable[Source[T]],
    accept: Callable[[T], bool] = is_present,
    action: str = "read",
) -> tuple[SourceResult[T], Optional[Source[T]]]:
    """
    Run ``sources`` in order and return the first accepted result together
    with the source that produced it.

    Failures are logged and skipped; a fatal failure ends the run. When no
    source is accepted the returned result is a failure listing every reason
    and the source is ``None``.
    """
    reasons: list[str] = []
    for source in sources:
        result = source.run()
        if result.ok:
            if source.accept_empty or accept(result.value):
                logger.debug("%s served by %s", action, source.name)
                return result, source
            reasons.append(f"{source.name}: empty")
            logger.info("%s: %s returned nothing, trying next source", action, source.name)
            continue
        reasons.append(f"{source.name}: {result.reason}")
        if result.fatal:
            logger.warning("%s: %s refused: %s", action, source.name, result.reason)
            return result, source
        logger.warning("%s: %s failed: %s", action, source.name, result.reason)
    return SourceResult.failure("none", "; ".join(reasons) or "no sources"), None
