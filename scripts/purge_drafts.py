#!/usr/bin/env python3
"""
purge_drafts.py - 오래된 강의 편집 드래프트 정리 스크립트

default.yaml의 storage.draft_retention_days 설정에 따라
마지막 수정(updated_at) 이후 보관 기간이 지난 드래프트 디렉터리를 삭제한다.
draft.json을 읽을 수 없으면 디렉터리 mtime 기준.

사용법:
    # 기본 실행 (dry-run)
    uv run python scripts/purge_drafts.py

    # 실제 삭제
    uv run python scripts/purge_drafts.py --execute

    # 보관 기간 지정
    uv run python scripts/purge_drafts.py --retention-days 3 --execute

    # cron 예시 (매일 새벽 3시)
    0 3 * * * cd /path/to/project && uv run python scripts/purge_drafts.py --execute >> /var/log/purge_drafts.log 2>&1
"""

import argparse
import json
import logging
import os
import shutil
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv  # noqa: E402

from src.app.main import load_config, resolve_data_dir  # noqa: E402
from src.core.storage import DraftStore  # noqa: E402
from src.domain.constants import DRAFT_JSON_FILENAME  # noqa: E402

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7


@dataclass
class PurgeResult:
    """Purge 결과."""
    scanned_drafts: int = 0
    scanned_size_mb: float = 0.0

    purged_drafts: int = 0
    purged_size_mb: float = 0.0

    errors: list[str] = field(default_factory=list)


def get_folder_size(folder: Path) -> int:
    """폴더 전체 크기 (bytes)."""
    return sum(item.stat().st_size for item in folder.rglob("*") if item.is_file())


def get_draft_updated_at(folder: Path) -> datetime:
    """draft.json의 updated_at, 없거나 손상이면 폴더 mtime (UTC)."""
    try:
        data = json.loads((folder / DRAFT_JSON_FILENAME).read_text(encoding="utf-8"))
        updated = datetime.fromisoformat(data["updated_at"])
        return updated if updated.tzinfo else updated.replace(tzinfo=timezone.utc)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.debug(f"updated_at 없음, mtime 사용: {folder.name}: {e}")
        return datetime.fromtimestamp(folder.stat().st_mtime, tz=timezone.utc)


def purge_drafts(
    store: DraftStore,
    retention_days: int,
    execute: bool,
    now: datetime | None = None,
) -> PurgeResult:
    """보관 기간이 지난 드래프트 정리."""
    result = PurgeResult()
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)

    for folder in store.list_drafts():
        size = get_folder_size(folder)
        result.scanned_drafts += 1
        result.scanned_size_mb += size / (1024 * 1024)

        if get_draft_updated_at(folder) >= cutoff:
            continue

        if not execute:
            logger.info(f"[DRY-RUN] 삭제 예정: {folder.name} ({size / 1024:.1f} KB)")
            result.purged_drafts += 1
            result.purged_size_mb += size / (1024 * 1024)
            continue

        try:
            shutil.rmtree(folder)
        except OSError as e:
            result.errors.append(f"삭제 실패 {folder.name}: {e}")
            logger.error(f"삭제 실패 {folder}: {e}")
            continue
        result.purged_drafts += 1
        result.purged_size_mb += size / (1024 * 1024)
        logger.info(f"삭제됨: {folder.name} ({size / 1024:.1f} KB)")

    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="오래된 강의 편집 드래프트 정리",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--execute",
        action="store_true",
        help="실제 삭제 실행 (기본: dry-run)",
    )
    parser.add_argument(
        "--retention-days",
        type=int,
        default=None,
        help="보관 기간 (기본: storage.draft_retention_days)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="설정 파일 경로 (기본: 프로젝트 루트의 default.yaml)",
    )

    args = parser.parse_args(argv)

    load_dotenv()
    config = load_config(Path(args.config) if args.config else None)
    data_dir = resolve_data_dir(config)
    retention_days = args.retention_days
    if retention_days is None:
        retention_days = config.get("storage", {}).get(
            "draft_retention_days", DEFAULT_RETENTION_DAYS
        )

    logger.info(f"보관 정책: {retention_days}일, 저장소: {data_dir}")
    if not os.path.isdir(data_dir):
        logger.warning(f"data 디렉터리 없음: {data_dir}")

    if not args.execute:
        logger.info("=" * 50)
        logger.info("DRY-RUN 모드 (실제 삭제 없음)")
        logger.info("실제 실행: --execute 옵션 추가")
        logger.info("=" * 50)

    result = purge_drafts(DraftStore(data_dir), retention_days, args.execute)

    # 결과 출력
    logger.info("=" * 50)
    logger.info("Purge 결과:")
    logger.info(f"  스캔: {result.scanned_drafts} drafts ({result.scanned_size_mb:.2f} MB)")
    logger.info(f"  정리: {result.purged_drafts} drafts ({result.purged_size_mb:.2f} MB)")
    if result.errors:
        logger.warning(f"  에러: {len(result.errors)}개")
        for err in result.errors[:5]:  # 최대 5개만 출력
            logger.warning(f"    - {err}")

    return 0 if not result.errors else 1


if __name__ == "__main__":
    sys.exit(main())
