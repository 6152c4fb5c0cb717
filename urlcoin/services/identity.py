"""Identity service: handle-based sign-up and sign-in.

A handle maps to a synthetic e-mail address by appending a fixed suffix.
Credentials live in the ``accounts`` collection keyed by that address and
point at the user document created on registration.
"""
import logging
import uuid
from datetime import datetime
from typing import Optional

from urlcoin.core.config import get_settings
from urlcoin.core.database import kst_now, to_kst
from urlcoin.core.security import get_password_hash, verify_password
from urlcoin.schemas.user import UserAccount
from urlcoin.services.document_store import DocumentStore
from urlcoin.services.ledger import USERS_COLLECTION

settings = get_settings()
logger = logging.getLogger(__name__)

ACCOUNTS_COLLECTION = "accounts"


class IdentityError(ValueError):
    """Base class for registration failures."""


class NicknameTakenError(IdentityError):
    """Raised when another user already has the nickname."""


class AccountExistsError(IdentityError):
    """Raised when the handle is already registered."""


def handle_to_email(handle: str) -> str:
    """Map a user-chosen handle to its synthetic e-mail address."""
    return f"{handle.strip().lower()}{settings.email_suffix}"


def initial_account(uid: str, email: str, nickname: str, now: datetime, is_admin: bool = False) -> UserAccount:
    """Build the account every new user starts with."""
    local = to_kst(now)
    return UserAccount(
        uid=uid,
        nickname=nickname,
        email=email,
        cash=settings.starting_cash,
        holdings={},
        history=[],
        total_asset=settings.starting_cash,
        hourly_asset=settings.starting_cash,
        last_hour_checked=local.hour,
        today_profit=0,
        yesterday_profit=0,
        last_login_date=local.date().isoformat(),
        created_at=local.isoformat(),
        is_admin=is_admin,
    )


def register(
    store: DocumentStore,
    handle: str,
    password: str,
    nickname: str,
    now: Optional[datetime] = None,
    is_admin: bool = False
) -> UserAccount:
    """Create credentials and the initial user document.

    The nickname check is a query before the write, so two simultaneous
    sign-ups with the same nickname can both pass it.

    Raises:
        NicknameTakenError: If the nickname is in use
        AccountExistsError: If the handle is already registered
    """
    nickname = nickname.strip()
    if store.query_equals(USERS_COLLECTION, "nickname", nickname):
        raise NicknameTakenError(f"Nickname already in use: {nickname}")

    email = handle_to_email(handle)
    if store.get(ACCOUNTS_COLLECTION, email) is not None:
        raise AccountExistsError(f"Account already exists: {handle}")

    uid = uuid.uuid4().hex
    store.set(ACCOUNTS_COLLECTION, email, {
        "uid": uid,
        "email": email,
        "hashedPassword": get_password_hash(password),
    })

    account = initial_account(uid, email, nickname, now or kst_now(), is_admin=is_admin)
    store.set(USERS_COLLECTION, uid, account.to_document())
    logger.info(f"New user registered: {nickname} ({email})")
    return account


def authenticate(store: DocumentStore, handle: str, password: str) -> Optional[str]:
    """Check credentials.

    Returns:
        The user id, or None if the handle is unknown or the password is wrong
    """
    credentials = store.read(ACCOUNTS_COLLECTION, handle_to_email(handle))
    if not credentials:
        return None
    if not verify_password(password, credentials["hashedPassword"]):
        return None
    return credentials["uid"]


def ensure_default_admin(store: DocumentStore) -> bool:
    """Register the default operator account if it is missing.

    Returns:
        True if the account was created
    """
    if store.get(ACCOUNTS_COLLECTION, handle_to_email(settings.default_admin_handle)) is not None:
        return False
    if store.query_equals(USERS_COLLECTION, "nickname", settings.admin_nickname):
        logger.warning(f"Nickname {settings.admin_nickname} is taken; default admin not created")
        return False

    register(
        store,
        settings.default_admin_handle,
        settings.default_admin_password,
        settings.admin_nickname,
        is_admin=True,
    )
    logger.warning(
        f"Default admin '{settings.default_admin_handle}' created - change the password after first login"
    )
    return True
