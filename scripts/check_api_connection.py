#!/usr/bin/env python
"""
백엔드 연결 확인 스크립트.

설정된 Kibutz REST 백엔드에 공개 엔드포인트(check-email)로 요청을 보내고,
KIBUTZ_TOKEN이 있으면 /users/me도 확인한다.

실행:
    uv run python scripts/check_api_connection.py
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# 프로젝트 루트를 path에 추가
sys.path.insert(0, str(Path(__file__).parent.parent))

# .env 파일 로드
from dotenv import load_dotenv  # noqa: E402

load_dotenv()

from src.app.backend import BackendError, KibutzAPIClient  # noqa: E402
from src.app.main import load_config  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


async def check_public(api: KibutzAPIClient) -> bool:
    """인증 없는 엔드포인트 확인."""
    logger.info(f"공개 엔드포인트 확인: {api.base_url}/auth/check-email")
    try:
        exists = await api.check_email("connection-check@example.com")
    except BackendError as e:
        logger.error(f"백엔드 오류: {e.code} {e.message}")
        return False
    logger.info(f"응답 수신 (exists={exists})")
    return True


async def check_authenticated(api: KibutzAPIClient) -> bool:
    """토큰으로 /users/me 확인."""
    logger.info("인증 엔드포인트 확인: /users/me")
    try:
        me = await api.get_me()
    except BackendError as e:
        logger.error(f"인증 실패: {e.code} {e.message}")
        return False
    logger.info(f"로그인 사용자: {me.get('name') or me.get('email')}")
    return True


async def main() -> int:
    config = load_config()
    token = os.environ.get("KIBUTZ_TOKEN")

    results: dict[str, bool] = {}
    async with KibutzAPIClient.from_config(config, token=token) as api:
        results["public"] = await check_public(api)
        if token:
            results["authenticated"] = await check_authenticated(api)
        else:
            logger.info("KIBUTZ_TOKEN 없음, 인증 확인 스킵")

    # 결과 요약
    logger.info("=" * 50)
    for name, passed in results.items():
        logger.info(f"  {name}: {'PASS' if passed else 'FAIL'}")
    logger.info("=" * 50)

    return 0 if all(results.values()) else 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
