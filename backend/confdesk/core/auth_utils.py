import logging
import os
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from confdesk.lib.api_client import supabase

logger = logging.getLogger("confdesk.auth")

# === Auth 核心配置 ===
# 中文注释:
# 1. 密钥来源于 Supabase Project Settings 中的 JWT Secret。
# 2. auto_error=False：没有 Bearer 头时交给上层决定（开发环境可走头部声明身份）。
SUPABASE_JWT_SECRET = os.environ.get("SUPABASE_JWT_SECRET", "mock-secret-replace-later")
ALGORITHM = "HS256"

security = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict:
    """
    解码并验证 Supabase JWT Token，返回 {"id", "email"}
    """
    try:
        header = jwt.get_unverified_header(token)
        if header.get("alg") == ALGORITHM and SUPABASE_JWT_SECRET:
            payload = jwt.decode(token, SUPABASE_JWT_SECRET, algorithms=[ALGORITHM], audience="authenticated")
            user_id = payload.get("sub")
            if user_id is None:
                raise HTTPException(status_code=401, detail="Invalid token payload")
            return {"id": user_id, "email": payload.get("email")}
    except JWTError as e:
        logger.info(f"JWT 验证失败: {e}")
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")

    # fallback: 非 HS256（JWT Signing Keys）时通过 Supabase Auth API 校验
    try:
        response = supabase.auth.get_user(token)
        user = response.user if response else None
    except Exception as e:
        # 中文注释: Supabase 配置缺失/网络异常统一视为鉴权失败，不返回 500
        logger.info(f"JWT fallback 校验失败: {e}")
        raise HTTPException(status_code=401, detail="Session expired. Please log in again.")

    if not user:
        raise HTTPException(status_code=401, detail="Invalid token payload")
    return {"id": user.id, "email": user.email}


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[dict]:
    if credentials is None or not credentials.credentials:
        return None
    return decode_access_token(credentials.credentials)
