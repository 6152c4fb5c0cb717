"""Security utilities for authentication and authorization."""
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from urlcoin.core.config import get_settings
from urlcoin.schemas.user import TokenData, UserAccount
from urlcoin.services.document_store import DocumentStore, get_document_store
from urlcoin.services.ledger import USERS_COLLECTION

# Password hashing context
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# JWT settings
_settings = get_settings()
SECRET_KEY = _settings.jwt_secret_key
ALGORITHM = _settings.algorithm
ACCESS_TOKEN_EXPIRE_MINUTES = _settings.access_token_expire_minutes

# HTTP Bearer for token authentication
bearer_scheme = HTTPBearer()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password

    Returns:
        True if password matches, False otherwise
    """
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)


def create_access_token(uid: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token for a user id.

    Args:
        uid: User id stored as the token subject
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": uid, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenData:
    """Decode and verify a JWT token.

    Raises:
        HTTPException: If token is invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        uid: str = payload.get("sub")
        if uid is None:
            raise credentials_exception
        return TokenData(uid=uid)
    except JWTError:
        raise credentials_exception


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    store: DocumentStore = Depends(get_document_store)
) -> UserAccount:
    """Get current authenticated user.

    Args:
        credentials: HTTP Authorization credentials
        store: Document store

    Returns:
        The caller's account

    Raises:
        HTTPException: If authentication fails
    """
    token_data = decode_token(credentials.credentials)

    data = store.read(USERS_COLLECTION, token_data.uid)
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserAccount.from_document(token_data.uid, data)


def require_admin(current_user: UserAccount = Depends(get_current_user)) -> UserAccount:
    """Allow only operator accounts through.

    Raises:
        HTTPException: 403 if the caller is not an admin
    """
    if not (current_user.is_admin or current_user.nickname == _settings.admin_nickname):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user
