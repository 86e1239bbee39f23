#!/usr/bin/env python3
"""
publish_all_courses.py - 커뮤니티의 모든 강의를 공개 상태로 전환

isPublished=false로 남아 있는 강의를 PATCH /courses/{id}로 공개한다.
이미 공개된 강의는 건너뛴다.

사용법:
    # 기본 실행 (dry-run)
    KIBUTZ_TOKEN=... uv run python scripts/publish_all_courses.py COMMUNITY_ID

    # 실제 반영
    KIBUTZ_TOKEN=... uv run python scripts/publish_all_courses.py COMMUNITY_ID --execute
"""

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv  # noqa: E402

from src.app.backend import BackendError, KibutzAPIClient  # noqa: E402
from src.app.main import load_config  # noqa: E402

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@dataclass
class PublishResult:
    scanned: int = 0
    already_published: int = 0
    published: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


async def publish_all(
    api: KibutzAPIClient, community_id: str, execute: bool
) -> PublishResult:
    """미공개 강의 공개. 강의별 실패는 기록 후 계속."""
    result = PublishResult()
    for course in await api.list_community_courses(community_id):
        result.scanned += 1
        course_id = course["id"]
        if course.get("isPublished"):
            result.already_published += 1
            continue

        if not execute:
            logger.info(f"[DRY-RUN] 공개 예정: {course_id} ({course.get('title', '')})")
            result.published.append(course_id)
            continue

        try:
            await api.update_course(course_id, {"isPublished": "true"})
        except BackendError as e:
            result.errors.append(f"{course_id}: {e.message}")
            logger.error(f"공개 실패 {course_id}: {e}")
            continue
        result.published.append(course_id)
        logger.info(f"공개됨: {course_id} ({course.get('title', '')})")

    return result


async def run(community_id: str, execute: bool) -> int:
    token = os.environ.get("KIBUTZ_TOKEN")
    if not token:
        logger.error("KIBUTZ_TOKEN이 설정되지 않았습니다.")
        return 1

    async with KibutzAPIClient.from_config(load_config(), token=token) as api:
        try:
            result = await publish_all(api, community_id, execute)
        except BackendError as e:
            logger.error(f"강의 목록 조회 실패: {e}")
            return 1

    logger.info("=" * 50)
    logger.info(
        f"스캔: {result.scanned}, 이미 공개: {result.already_published}, "
        f"공개{'' if execute else ' 예정'}: {len(result.published)}"
    )
    for err in result.errors[:5]:
        logger.warning(f"    - {err}")
    return 0 if not result.errors else 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="커뮤니티 강의 일괄 공개")
    parser.add_argument("community_id", help="대상 커뮤니티 ID")
    parser.add_argument(
        "--execute",
        action="store_true",
        help="실제 반영 (기본: dry-run)",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    return asyncio.run(run(args.community_id, args.execute))


if __name__ == "__main__":
    sys.exit(main())
