"""
재시도 로직 유틸리티.

백엔드 조회(GET)의 일시적 네트워크 실패만 재시도한다.
변경 요청(POST/PATCH/PUT/DELETE)은 중복 실행 위험이 있어 재시도하지 않는다.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_exponential_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_retries: int = 2,
    initial_delay: float = 0.5,
    max_delay: float = 8.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    label: str = "",
    **kwargs: Any,
) -> T:
    """
    지수 백오프를 사용한 재시도.

    Args:
        func: 재시도할 비동기 함수
        *args: func에 전달할 위치 인자
        max_retries: 최대 재시도 횟수 (0이면 한 번만 시도)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        label: 로그에 남길 호출 이름 (예: "GET /courses/abc")
        **kwargs: func에 전달할 키워드 인자

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    delay = initial_delay
    attempts = max_retries + 1
    name = label or getattr(func, "__name__", "call")

    for attempt in range(1, attempts + 1):
        try:
            result = await func(*args, **kwargs)
        except exceptions as e:
            if attempt == attempts:
                logger.error(f"{name}: all {attempts} attempts failed. Last error: {e}")
                raise
            logger.warning(
                f"{name}: attempt {attempt}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)
            continue

        if attempt > 1:
            logger.info(f"{name}: retry succeeded on attempt {attempt}/{attempts}")
        return result

    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)


async def with_fallback(
    primary: Callable[[], Awaitable[T]],
    fallback: Callable[[], T],
    exceptions: tuple[type[Exception], ...] = (Exception,),
    when: Callable[[Exception], bool] | None = None,
) -> T:
    """
    primary 실패 시 fallback 값 사용.

    when이 주어지면 when(e)가 참인 실패만 fallback, 나머지는 전파.

    예: /users/me 네트워크 실패 → 로컬 프로필 캐시
    """
    try:
        return await primary()
    except exceptions as e:
        if when is not None and not when(e):
            raise
        logger.warning(f"Primary call failed, using fallback: {e}")
        return fallback()
