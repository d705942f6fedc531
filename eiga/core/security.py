from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from jose import JWTError, jwt

from eiga.core.config import Settings


def create_access_token(subject: str, cfg: Settings, expires_minutes: int | None = None, **claims) -> str:
    minutes = cfg.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode = {"sub": subject, "exp": expire, **claims}
    return jwt.encode(to_encode, cfg.SECRET_KEY, algorithm=cfg.ALGORITHM)


def decode_token(token: str, cfg: Settings) -> dict | None:
    try:
        payload = jwt.decode(token, cfg.SECRET_KEY, algorithms=[cfg.ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload


def normalize_callback_path(path: str | None, cfg: Settings) -> str:
    # only same-site relative paths; "//host" would be protocol-relative
    if not path or not path.startswith("/") or path.startswith("//"):
        return cfg.DEFAULT_CALLBACK_PATH
    return path


def build_magic_link(user_id: int, email: str, cfg: Settings, callback_path: str | None = None) -> str:
    token = create_access_token(
        str(user_id),
        cfg,
        expires_minutes=cfg.MAGIC_LINK_EXPIRE_MINUTES,
        email=email,
        purpose="magic",
    )
    query = urlencode({"token": token, "callbackUrl": normalize_callback_path(callback_path, cfg)})
    return f"{cfg.BASE_URL.rstrip('/')}/api/auth/callback?{query}"
