"""Authentication API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status
from urlcoin.core.security import create_access_token, get_current_user
from urlcoin.schemas.user import Token, UserAccount, UserCreate, UserLogin, UserResponse
from urlcoin.services.document_store import DocumentStore, get_document_store
from urlcoin.services import identity

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, store: DocumentStore = Depends(get_document_store)):
    """Register a new user.

    Args:
        user_data: Handle, password and nickname
        store: Document store

    Returns:
        Created user

    Raises:
        HTTPException: If the nickname or handle is already taken
    """
    try:
        account = identity.register(store, user_data.handle, user_data.password, user_data.nickname)
    except identity.NicknameTakenError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Nickname already in use"
        )
    except identity.AccountExistsError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Handle already registered"
        )
    return account


@router.post("/login", response_model=Token)
async def login(user_data: UserLogin, store: DocumentStore = Depends(get_document_store)):
    """Login and get access token.

    Raises:
        HTTPException: If authentication fails
    """
    uid = identity.authenticate(store, user_data.handle, user_data.password)
    if not uid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect handle or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return Token(access_token=create_access_token(uid), token_type="bearer")


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(current_user: UserAccount = Depends(get_current_user)):
    """Sign out.

    Tokens are stateless; the client discards its copy.
    """
    return None


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: UserAccount = Depends(get_current_user)):
    """Get current user information."""
    return current_user
