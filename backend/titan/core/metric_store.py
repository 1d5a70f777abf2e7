"""
Metric Store - holds the day's metric values and writes every change through to storage.

Each metric is persisted under its own key. After any mutation completes, the in-memory
value equals the persisted value; when storage refuses a write the in-memory value is
left untouched and ``StorageWriteError`` is raised.
"""

import asyncio
import logging
import math
from contextlib import AsyncExitStack, asynccontextmanager
from numbers import Real
from typing import AsyncIterator, Dict, Iterable, Mapping, Optional, Tuple

from ..storage import StorageInterface
from .errors import MetricValueError, StorageWriteError
from .metrics import DEFAULTS, ENERGY_MAX, ENERGY_MIN, STEP_SIZES, Metric

logger = logging.getLogger(__name__)


def format_value(value: float) -> str:
    """Serialize a metric value as text ("500", "7.5")."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def parse_value(metric: Metric, raw: Optional[str]) -> Optional[float]:
    """
    Parse a persisted value. Anything missing, unparseable or out of range is None.
    """
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        return None
    if not math.isfinite(value) or value < 0:
        return None
    if metric is Metric.ENERGY and (not value.is_integer() or not (ENERGY_MIN <= value <= ENERGY_MAX)):
        return None
    return value


def _require_number(metric: Metric, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise MetricValueError(f"{metric.value} expects a number, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise MetricValueError(f"{metric.value} expects a finite number, got {value}")
    return value


class MetricStore:
    """
    Owner of the seven daily metrics for one application session.

    Build with ``await MetricStore.open(storage)``; ``get`` and ``snapshot`` then read the
    cached values without I/O.
    """

    def __init__(self, storage: StorageInterface, namespace: str = "metrics"):
        self._storage = storage
        self._namespace = namespace.strip("/")
        self._values: Dict[Metric, float] = dict(DEFAULTS)
        # One lock per metric; multi-metric operations take them in declaration order
        self._locks: Dict[Metric, asyncio.Lock] = {metric: asyncio.Lock() for metric in Metric}

    @classmethod
    async def open(cls, storage: StorageInterface, namespace: str = "metrics") -> "MetricStore":
        """Create a store and load persisted values."""
        store = cls(storage, namespace)
        await store.load()
        return store

    def key_for(self, metric: Metric) -> str:
        return f"{self._namespace}/{metric.value}"

    async def load(self) -> None:
        """Read every metric from storage, falling back to defaults for absent or corrupt values."""
        for metric in Metric:
            async with self._locks[metric]:
                raw = await self._storage.get(self.key_for(metric))
                value = parse_value(metric, raw)
                if value is None:
                    if raw is not None:
                        logger.warning(
                            f"Ignoring corrupt stored value for {metric.value}: {raw!r}",
                            extra={"extra_fields": {"metric": metric.value}}
                        )
                    value = metric.default
                self._values[metric] = value
        logger.info(f"Metrics loaded: {self._log_view()}")

    def get(self, metric: Metric) -> float:
        return self._values[metric]

    def snapshot(self) -> Dict[Metric, float]:
        return dict(self._values)

    async def set(self, metric: Metric, value: float) -> float:
        """
        Overwrite a metric and persist it.

        Energy must be an integer in [0, 10]; every other metric must be non-negative.
        Rejected values raise ``MetricValueError`` and leave the metric unchanged.
        """
        value = self._validate_absolute(metric, value)
        async with self._locks[metric]:
            await self._persist(metric, value)
        return value

    async def increment(self, metric: Metric, delta: float) -> float:
        """
        Add ``delta`` to an accumulating metric, floored at 0, and persist the result.

        Returns:
            The new value
        """
        changes = await self.increment_many({metric: delta})
        return changes[metric][1]

    async def increment_many(self, deltas: Mapping[Metric, float]) -> Dict[Metric, Tuple[float, float]]:
        """
        Apply several increments as one batch.

        Returns:
            Mapping of metric -> (old value, new value)
        """
        checked: Dict[Metric, float] = {}
        for metric, delta in deltas.items():
            if metric.is_absolute:
                raise MetricValueError(f"{metric.value} is absolute and cannot be incremented")
            checked[metric] = _require_number(metric, delta)

        async with self._locked(checked):
            targets = {
                metric: max(0.0, self._values[metric] + delta)
                for metric, delta in checked.items()
            }
            for metric, value in targets.items():
                if not math.isfinite(value):
                    raise MetricValueError(f"{metric.value} would overflow: {self._values[metric]} + {checked[metric]}")
            before = {metric: self._values[metric] for metric in targets}
            written = []
            try:
                for metric, value in targets.items():
                    await self._persist(metric, value)
                    written.append(metric)
            except StorageWriteError:
                await self._rollback(written, before)
                raise

        return {metric: (before[metric], targets[metric]) for metric in targets}

    async def step(self, metric: Metric, direction: int = 1) -> float:
        """Manual dashboard step: water +/-250 ml, sleep +/-0.5 h."""
        if metric not in STEP_SIZES:
            raise MetricValueError(f"{metric.value} has no manual step")
        if direction not in (1, -1):
            raise MetricValueError(f"direction must be 1 or -1, got {direction}")
        return await self.increment(metric, STEP_SIZES[metric] * direction)

    async def reset_all(self) -> Dict[Metric, float]:
        """
        Restore all seven metrics to their defaults as one logical operation.

        Every metric is attempted even if an earlier write fails; the first failure is
        raised afterwards so no metric is silently left stale.
        """
        failures = []
        async with self._locked(Metric):
            for metric in Metric:
                try:
                    await self._persist(metric, metric.default)
                except StorageWriteError as e:
                    failures.append(e)

        if failures:
            logger.error(f"Reset incomplete: {len(failures)} metric(s) not persisted")
            raise failures[0]

        logger.info("All metrics reset to defaults")
        return self.snapshot()

    @asynccontextmanager
    async def _locked(self, metrics: Iterable[Metric]) -> AsyncIterator[None]:
        wanted = set(metrics)
        async with AsyncExitStack() as stack:
            for metric in Metric:
                if metric in wanted:
                    await stack.enter_async_context(self._locks[metric])
            yield

    async def _persist(self, metric: Metric, value: float) -> None:
        ok = await self._storage.set(self.key_for(metric), format_value(value))
        if not ok:
            raise StorageWriteError(f"Failed to persist {metric.value}")
        old = self._values[metric]
        self._values[metric] = value
        logger.debug(
            f"Persisted {metric.value}: {old} -> {value}",
            extra={"extra_fields": {"metric": metric.value, "old": old, "new": value}}
        )

    async def _rollback(self, written: Iterable[Metric], before: Mapping[Metric, float]) -> None:
        for metric in written:
            try:
                await self._persist(metric, before[metric])
            except StorageWriteError:
                logger.error(f"Rollback of {metric.value} failed", exc_info=True)

    def _validate_absolute(self, metric: Metric, value: object) -> float:
        value = _require_number(metric, value)
        if metric is Metric.ENERGY:
            if not value.is_integer() or not (ENERGY_MIN <= value <= ENERGY_MAX):
                raise MetricValueError(
                    f"energy_level must be an integer between {ENERGY_MIN} and {ENERGY_MAX}, got {value}"
                )
        elif value < 0:
            raise MetricValueError(f"{metric.value} cannot be negative, got {value}")
        return value

    def _log_view(self) -> str:
        return ", ".join(f"{m.value}={format_value(v)}" for m, v in self._values.items())

