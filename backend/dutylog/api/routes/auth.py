"""Authentication and onboarding endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dutylog.api.deps import get_current_principal
from dutylog.core.database import get_db
from dutylog.core.policy import Principal
from dutylog.schemas.auth import (
    CheckProfileResponse,
    LoginRequest,
    RefreshRequest,
    SetupProfileRequest,
    SignupRequest,
    TokenResponse,
)
from dutylog.schemas.organization import OrganizationResponse
from dutylog.schemas.user import SetupProfileEnvelope, UserResponse
from dutylog.services.auth_service import AuthService
from dutylog.services.org_service import OrgService

router = APIRouter()


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """Register an identity and return its tokens.

    The identity has no profile until it completes onboarding
    (``/auth/setup-profile``) or accepts an invitation.
    """
    _, tokens = await AuthService(db).signup(request.email, request.password)
    return TokenResponse(**tokens)


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate with email and password.

    Args:
        request: Login credentials
        db: Database session

    Returns:
        Access and refresh tokens

    Raises:
        401: Invalid credentials
    """
    _, tokens = await AuthService(db).authenticate(request.email, request.password)
    return TokenResponse(**tokens)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: RefreshRequest,
    db: AsyncSession = Depends(get_db),
):
    """Issue a new access token from a refresh token."""
    _, tokens = await AuthService(db).refresh(request.refresh_token)
    return TokenResponse(**tokens)


@router.post("/setup-profile", response_model=SetupProfileEnvelope)
async def setup_profile(
    request: SetupProfileRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Create the caller's organization and make them its first admin.

    Raises:
        400: Missing fields or caller already has a profile
        403: ``userId`` does not match the caller
        500: Profile creation failed (the organization is rolled back)
    """
    user, org = await OrgService(db).setup_profile(principal, request)
    return SetupProfileEnvelope(
        user=UserResponse.model_validate(user),
        organization=OrganizationResponse.model_validate(org),
    )


@router.get("/check-profile", response_model=CheckProfileResponse)
async def check_profile(principal: Principal = Depends(get_current_principal)):
    """Report whether the caller has completed onboarding."""
    profile = principal.profile
    return CheckProfileResponse(
        has_profile=profile is not None,
        has_organization=profile is not None and profile.organization_id is not None,
        user_id=principal.id,
    )
