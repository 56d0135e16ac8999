from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from app.core.dependencies import get_current_user, get_user_service
from app.db.schema import User
from app.models.auth import Token
from app.models.user import UserCreate, UserRead, UserSignin
from app.services.user import UserService

router = APIRouter()


@router.post(
    "/signup",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register",
    description="Creates a member account. Certificates are linked to it at issuance or by an administrator."
)
def signup(
    user_in: UserCreate,
    service: UserService = Depends(get_user_service)
):
    try:
        return service.create_user(user_in)
    except ValueError as e:
        logger.warning(f"Signup rejected for {user_in.email}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@router.post(
    "/token",
    response_model=Token,
    summary="Sign In",
    description="Exchanges email and password for a bearer access token."
)
def token(
    credentials: UserSignin,
    service: UserService = Depends(get_user_service)
):
    user = service.authenticate_user(credentials.email, credentials.password)

    # Same answer for unknown email and wrong password
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is deactivated. Please contact the ministry office."
        )

    logger.info(f"User signed in: {user.id}")
    return service.generate_tokens(user)


@router.get("/me", response_model=UserRead, summary="Current User")
def get_me(current_user: User = Depends(get_current_user)):
    return current_user
