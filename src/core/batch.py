"""
Batch runner: 독립 작업(유닛 파싱, 파일 export 등)의 병렬 실행.

규칙:
- 동시 실행 수 제한 (in-flight 창 = max_workers)
- 결과는 입력 순서 그대로 (완료 순서 무관)
- cancel 이벤트 설정 후 새 작업 디스패치 중단, 실행 중 작업은 끝까지
- TranscoderError는 항목 결과로 수집, 그 외 예외는 전파
"""

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from src.domain.constants import DEFAULT_MAX_WORKERS
from src.domain.errors import TranscoderError

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ItemOutcome(Generic[R]):
    """항목 하나의 결과."""
    index: int
    key: str
    value: R | None = None
    error: TranscoderError | None = None
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.cancelled


@dataclass
class BatchResult(Generic[R]):
    """배치 전체 결과 (outcomes는 입력 순서)."""
    outcomes: list[ItemOutcome[R]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(o.ok for o in self.outcomes)

    @property
    def cancelled(self) -> bool:
        return any(o.cancelled for o in self.outcomes)

    def values(self) -> list[R]:
        """성공한 항목 값만 (입력 순서)."""
        return [o.value for o in self.outcomes if o.ok and o.value is not None]

    def errors(self) -> list[ItemOutcome[R]]:
        return [o for o in self.outcomes if o.error is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "items": [
                {
                    "index": o.index,
                    "key": o.key,
                    "ok": o.ok,
                    "cancelled": o.cancelled,
                    "error": o.error.to_dict() if o.error else None,
                }
                for o in self.outcomes
            ],
        }


def run_batch(
    items: Sequence[T],
    func: Callable[[T], R],
    max_workers: int = DEFAULT_MAX_WORKERS,
    cancel: threading.Event | None = None,
    key: Callable[[T], str] = str,
) -> BatchResult[R]:
    """
    items 각각에 func 실행.

    Args:
        items: 입력 항목
        func: 항목 처리 함수 (TranscoderError는 결과로 수집)
        max_workers: 동시 실행 수
        cancel: 설정되면 남은 항목을 cancelled로 표시
        key: 항목 → 로그/리포트용 키

    Returns:
        BatchResult (outcomes[i]는 items[i]의 결과)
    """
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    outcomes: list[ItemOutcome[R] | None] = [None] * len(items)
    pending = list(range(len(items)))
    pending.reverse()
    in_flight: dict[Future[R], int] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        while pending or in_flight:
            # 창이 빌 때까지 디스패치
            while pending and len(in_flight) < max_workers:
                if cancel is not None and cancel.is_set():
                    break
                index = pending.pop()
                in_flight[pool.submit(func, items[index])] = index

            if not in_flight:
                break

            fut = next(as_completed(list(in_flight.keys())))
            index = in_flight.pop(fut)
            item_key = key(items[index])

            try:
                value = fut.result()
                outcomes[index] = ItemOutcome(index=index, key=item_key, value=value)
            except TranscoderError as e:
                logger.debug(f"Batch item {item_key} failed: {e}")
                outcomes[index] = ItemOutcome(index=index, key=item_key, error=e)

    for index in pending:
        outcomes[index] = ItemOutcome(index=index, key=key(items[index]), cancelled=True)
    if pending:
        logger.info(f"Batch cancelled: {len(pending)} item(s) not started")

    return BatchResult(outcomes=[o for o in outcomes if o is not None])
