"""
Token helpers.

- decode_token_payload: 서명 검증 없이 JWT payload만 읽는다 (표시 전용).
  권한 판정은 백엔드가 한다.
- sign_identity / read_identity: 백엔드(/users/me)가 확인한 사용자 ID를
  서버 비밀키로 서명해 쿠키에 보관한다. 서버에 저장하는 사용자별 상태
  (프로필 캐시, 드래프트, 열람 상태)는 이 ID로만 접근한다.
"""

import hashlib
import logging
from typing import Any

import jwt

logger = logging.getLogger(__name__)

IDENTITY_ALGORITHM = "HS256"


def decode_token_payload(token: str | None) -> dict[str, Any] | None:
    """
    JWT payload 디코딩.

    Returns:
        payload dict (형식이 잘못된 토큰이면 None)
    """
    if not token:
        return None
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            options={"verify_signature": False, "verify_exp": False},
            algorithms=["HS256", "RS256"],
        )
        return payload
    except jwt.PyJWTError as e:
        logger.warning(f"Failed to decode token: {e}")
        return None


def current_user_id(token: str | None) -> str | None:
    """검증되지 않은 sub (화면 표시용)."""
    payload = decode_token_payload(token)
    if not payload:
        return None
    sub = payload.get("sub")
    return str(sub) if sub is not None else None


def current_user_email(token: str | None) -> str | None:
    payload = decode_token_payload(token)
    return payload.get("email") if payload else None


# =============================================================================
# Confirmed identity
# =============================================================================

def token_fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def sign_identity(user_id: str, token: str, secret: str) -> str:
    """확인된 사용자 ID를 토큰 지문과 함께 서명."""
    return jwt.encode(
        {"uid": user_id, "tfp": token_fingerprint(token)},
        secret,
        algorithm=IDENTITY_ALGORITHM,
    )


def read_identity(value: str | None, token: str | None, secret: str) -> str | None:
    """
    서명된 ID 쿠키 확인.

    Returns:
        사용자 ID (서명이 틀리거나 다른 토큰으로 만든 쿠키면 None)
    """
    if not value or not token:
        return None
    try:
        claims: dict[str, Any] = jwt.decode(value, secret, algorithms=[IDENTITY_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.warning(f"Rejected identity cookie: {e}")
        return None
    if claims.get("tfp") != token_fingerprint(token):
        return None
    uid = claims.get("uid")
    return str(uid) if uid else None
