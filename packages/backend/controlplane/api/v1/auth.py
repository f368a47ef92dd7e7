from fastapi import APIRouter, Depends, Request

from controlplane.api.dependencies.auth import get_access_token, get_current_principal
from controlplane.api.dependencies.services import get_auth_service
from controlplane.core.problems import problem_response, problem_type
from controlplane.schemas.auth import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshResponse,
    RegisterRequest,
    TwoFactorSetupResponse,
    UserResponse,
    VerifyTwoFactorRequest,
)
from controlplane.services.auth import (
    AccountDeactivatedError,
    AuthService,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidOrExpiredSessionError,
    InvalidTwoFactorCodeError,
    Principal,
    TooManyAttemptsError,
    TwoFactorNotEnabledError,
    TwoFactorSetupNotInitiatedError,
    UserNotFoundError,
)


router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _invalid_code_problem():
    return problem_response(
        status=400,
        title="Bad Request",
        detail="Invalid verification code.",
        type_=problem_type("invalid-two-factor-code"),
    )


def _user_not_found_problem():
    return problem_response(
        status=404,
        title="Not Found",
        detail="User not found.",
        type_=problem_type("user-not-found"),
    )


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> UserResponse:
    try:
        user = await auth_service.register(
            email=payload.email,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
        )
    except DuplicateEmailError:
        return problem_response(
            status=409,
            title="Conflict",
            detail="A user with this email already exists.",
            type_=problem_type("duplicate-email"),
        )
    return UserResponse.from_user(user)


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    client_ip = request.client.host if request.client and request.client.host else "0.0.0.0"
    try:
        result = await auth_service.authenticate(
            payload.email,
            payload.password,
            payload.two_factor_code,
            client_ip=client_ip,
        )
    except TooManyAttemptsError:
        return problem_response(
            status=429,
            title="Too Many Requests",
            detail="Too many failed login attempts from this IP address.",
            type_=problem_type("rate-limit-exceeded"),
        )
    except InvalidCredentialsError:
        return problem_response(
            status=401,
            title="Unauthorized",
            detail="Invalid credentials.",
            type_=problem_type("invalid-credentials"),
        )
    except AccountDeactivatedError:
        return problem_response(
            status=401,
            title="Unauthorized",
            detail="Account is deactivated.",
            type_=problem_type("account-deactivated"),
        )
    except InvalidTwoFactorCodeError:
        return problem_response(
            status=401,
            title="Unauthorized",
            detail="Invalid two-factor authentication code.",
            type_=problem_type("invalid-two-factor-code"),
        )

    if result.requires_two_factor:
        return LoginResponse(requires_two_factor=True, message="Two-factor authentication required")
    return LoginResponse(
        access_token=result.access_token,
        expires_at=result.expires_at,
        user=UserResponse.from_user(result.user),
    )


@router.post("/logout", response_model=MessageResponse)
async def logout(
    access_token: str = Depends(get_access_token),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    # A credential whose session already ended logs out again as a no-op.
    await auth_service.logout(access_token)
    return MessageResponse(message="Logged out successfully")


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> RefreshResponse:
    try:
        result = await auth_service.refresh(principal.credential)
    except InvalidOrExpiredSessionError:
        return problem_response(
            status=401,
            title="Unauthorized",
            detail="Invalid or expired token.",
            type_=problem_type("invalid-session"),
        )
    return RefreshResponse(
        access_token=result.access_token,
        expires_at=result.expires_at,
        user=UserResponse.from_user(result.user),
    )


@router.get("/me", response_model=ProfileResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> ProfileResponse:
    return ProfileResponse(
        id=principal.user_id,
        email=principal.email,
        role=principal.role.value,
        organization_id=principal.organization_id,
    )


@router.get("/2fa/setup", response_model=TwoFactorSetupResponse)
async def setup_two_factor(
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> TwoFactorSetupResponse:
    try:
        setup = await auth_service.setup_two_factor(principal.user_id)
    except UserNotFoundError:
        return _user_not_found_problem()
    return TwoFactorSetupResponse(
        secret=setup.secret,
        provisioning_uri=setup.provisioning_uri,
        qr_code=setup.qr_code,
    )


@router.post("/2fa/enable", response_model=MessageResponse)
async def enable_two_factor(
    payload: VerifyTwoFactorRequest,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    try:
        await auth_service.enable_two_factor(principal.user_id, payload.code)
    except UserNotFoundError:
        return _user_not_found_problem()
    except TwoFactorSetupNotInitiatedError:
        return problem_response(
            status=400,
            title="Bad Request",
            detail="Two-factor setup not initiated.",
            type_=problem_type("two-factor-setup-not-initiated"),
        )
    except InvalidTwoFactorCodeError:
        return _invalid_code_problem()
    return MessageResponse(message="Two-factor authentication enabled successfully")


@router.post("/2fa/disable", response_model=MessageResponse)
async def disable_two_factor(
    payload: VerifyTwoFactorRequest,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    try:
        await auth_service.disable_two_factor(principal.user_id, payload.code)
    except UserNotFoundError:
        return _user_not_found_problem()
    except TwoFactorNotEnabledError:
        return problem_response(
            status=400,
            title="Bad Request",
            detail="Two-factor authentication is not enabled.",
            type_=problem_type("two-factor-not-enabled"),
        )
    except InvalidTwoFactorCodeError:
        return _invalid_code_problem()
    return MessageResponse(message="Two-factor authentication disabled successfully")
