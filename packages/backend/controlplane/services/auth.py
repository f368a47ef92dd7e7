from __future__ import annotations

import asyncio
import datetime
import logging
import time
import uuid
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import NoReturn

from controlplane.models.auth_session import Session
from controlplane.models.user import User, UserRole
from controlplane.repositories.sessions import SessionRepository
from controlplane.repositories.users import DuplicateEmailError, UserRepository
from controlplane.security import totp
from controlplane.security.password import Hasher, argon2_hasher, verify_password
from controlplane.security.tokens import AccessTokenSigner, AccessTokenValidationError, hash_token


logger = logging.getLogger(__name__)


class InvalidCredentialsError(Exception):
    pass


class AccountDeactivatedError(Exception):
    pass


class InvalidTwoFactorCodeError(Exception):
    pass


class TwoFactorSetupNotInitiatedError(Exception):
    pass


class TwoFactorNotEnabledError(Exception):
    pass


class InvalidOrExpiredSessionError(Exception):
    pass


class UserNotFoundError(Exception):
    pass


class TooManyAttemptsError(Exception):
    pass


@dataclass(frozen=True)
class AuthResult:
    requires_two_factor: bool
    access_token: str | None = None
    expires_at: datetime.datetime | None = None
    user: User | None = None


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    expires_at: datetime.datetime
    user: User


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    provisioning_uri: str
    qr_code: str


@dataclass(frozen=True)
class Principal:
    user_id: uuid.UUID
    email: str
    role: UserRole
    organization_id: uuid.UUID | None
    credential: str


MAX_FAILED_ATTEMPTS = 5
FAILED_ATTEMPTS_WINDOW_SECONDS = 60 * 15
MIN_FAILED_LOGIN_RESPONSE_SECONDS = 0.2
DEFAULT_SESSION_TTL = datetime.timedelta(days=7)
DUMMY_PASSWORD_HASH = argon2_hasher.hash("hostpanel-dummy-password")


class LoginRateLimiter:
    def __init__(self) -> None:
        self._failed_attempts: dict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def is_rate_limited(self, client_key: str, now: float | None = None) -> bool:
        async with self._lock:
            failures = self._prune_and_get(client_key, now)
            return len(failures) > MAX_FAILED_ATTEMPTS

    async def register_failure(self, client_key: str, now: float | None = None) -> bool:
        async with self._lock:
            failures = self._prune_and_get(client_key, now)
            failures.append(now if now is not None else time.monotonic())
            return len(failures) > MAX_FAILED_ATTEMPTS

    async def reset(self, client_key: str) -> None:
        async with self._lock:
            self._failed_attempts.pop(client_key, None)

    def _prune_and_get(self, client_key: str, now: float | None = None) -> deque[float]:
        current = now if now is not None else time.monotonic()
        threshold = current - FAILED_ATTEMPTS_WINDOW_SECONDS
        failures = self._failed_attempts[client_key]
        while failures and failures[0] < threshold:
            failures.popleft()
        return failures


login_rate_limiter = LoginRateLimiter()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class AuthService:
    """Password and TOTP authentication plus the session credential lifecycle."""

    def __init__(
        self,
        users: UserRepository,
        sessions: SessionRepository,
        tokens: AccessTokenSigner,
        *,
        hasher: Hasher = argon2_hasher,
        totp_issuer: str = "Hosting Control Panel",
        session_ttl: datetime.timedelta = DEFAULT_SESSION_TTL,
        rate_limiter: LoginRateLimiter = login_rate_limiter,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        self._users = users
        self._sessions = sessions
        self._tokens = tokens
        self._hasher = hasher
        self._totp_issuer = totp_issuer
        self._session_ttl = session_ttl
        self._rate_limiter = rate_limiter
        self._clock = clock

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
    ) -> User:
        # Self-registration never grants more than CLIENT and never joins an organization.
        return await self.create_user(
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            role=UserRole.CLIENT,
        )

    async def create_user(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: UserRole,
        organization_id: uuid.UUID | None = None,
    ) -> User:
        if await self._users.find_by_email(email) is not None:
            raise DuplicateEmailError("email already exists")

        user = User(
            id=uuid.uuid4(),
            organization_id=organization_id,
            email=email,
            password_hash=self._hasher.hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=True,
            two_factor_secret=None,
            two_factor_enabled=False,
        )
        return await self._users.add(user)

    async def authenticate(
        self,
        email: str,
        password: str,
        totp_code: str | None = None,
        *,
        client_ip: str | None = None,
    ) -> AuthResult:
        if client_ip and await self._rate_limiter.is_rate_limited(client_ip):
            raise TooManyAttemptsError("too many failed attempts")

        started = time.monotonic()
        user = await self._users.find_by_email(email)
        if user is None:
            verify_password(self._hasher, DUMMY_PASSWORD_HASH, password)
            await self._fail(started, client_ip, InvalidCredentialsError("invalid email or password"))

        if not verify_password(self._hasher, user.password_hash, password):
            await self._fail(started, client_ip, InvalidCredentialsError("invalid email or password"))

        if not user.is_active:
            raise AccountDeactivatedError("account is deactivated")

        now = self._clock()
        if user.two_factor_enabled:
            if not totp_code:
                return AuthResult(requires_two_factor=True)
            if not totp.verify_code(user.two_factor_secret, totp_code, now=now):
                logger.info("Rejected two-factor code for user %s", user.id)
                await self._fail(started, client_ip, InvalidTwoFactorCodeError("invalid two-factor code"))

        if client_ip:
            await self._rate_limiter.reset(client_ip)
        await self._record_login(user, now)

        expires_at = now + self._session_ttl
        access_token = self._tokens.issue(
            user_id=user.id,
            email=user.email,
            role=user.role.value,
            expires_at=expires_at,
            now=now,
        )
        await self._sessions.create(user_id=user.id, token_hash=hash_token(access_token), expires_at=expires_at)
        logger.info("Issued session for user %s", user.id)
        return AuthResult(
            requires_two_factor=False,
            access_token=access_token,
            expires_at=expires_at,
            user=user,
        )

    async def resolve_principal(self, credential: str) -> Principal:
        now = self._clock()
        try:
            claims = self._tokens.validate(credential, now=now)
        except AccessTokenValidationError as exc:
            raise InvalidOrExpiredSessionError("invalid or expired session") from exc

        session = await self._require_active_session(credential, now)
        if session.user_id != claims.sub:
            raise InvalidOrExpiredSessionError("invalid or expired session")

        user = await self._users.get_by_id(claims.sub)
        if user is None or not user.is_active:
            raise InvalidOrExpiredSessionError("invalid or expired session")

        return Principal(
            user_id=user.id,
            email=user.email,
            role=user.role,
            organization_id=user.organization_id,
            credential=credential,
        )

    async def logout(self, credential: str) -> None:
        deactivated = await self._sessions.deactivate(hash_token(credential))
        logger.debug("Logout deactivated %d session(s)", deactivated)

    async def refresh(self, credential: str) -> RefreshResult:
        now = self._clock()
        session = await self._require_active_session(credential, now)
        user = await self._users.get_by_id(session.user_id)
        if user is None:
            raise InvalidOrExpiredSessionError("invalid or expired session")

        # The new credential keeps the session's expiry.
        expires_at = _as_utc(session.expires_at)
        access_token = self._tokens.issue(
            user_id=user.id,
            email=user.email,
            role=user.role.value,
            expires_at=expires_at,
            now=now,
        )
        await self._sessions.replace_token(session.id, hash_token(access_token))
        return RefreshResult(access_token=access_token, expires_at=expires_at, user=user)

    async def setup_two_factor(self, user_id: uuid.UUID) -> TwoFactorSetup:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("user not found")

        # Replaces any unconfirmed secret; only the latest setup can be enabled.
        secret = totp.generate_secret()
        await self._users.update_secret(user.id, secret)
        uri = totp.provisioning_uri(secret, account_name=user.email, issuer=self._totp_issuer)
        return TwoFactorSetup(secret=secret, provisioning_uri=uri, qr_code=totp.qr_code_data_url(uri))

    async def enable_two_factor(self, user_id: uuid.UUID, code: str) -> None:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("user not found")
        if not user.two_factor_secret:
            raise TwoFactorSetupNotInitiatedError("two-factor setup not initiated")
        if not totp.verify_code(user.two_factor_secret, code, now=self._clock()):
            raise InvalidTwoFactorCodeError("invalid verification code")

        await self._users.enable_two_factor(user.id)
        logger.info("Two-factor authentication enabled for user %s", user.id)

    async def disable_two_factor(self, user_id: uuid.UUID, code: str) -> None:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError("user not found")
        if not user.two_factor_enabled:
            raise TwoFactorNotEnabledError("two-factor authentication is not enabled")
        if not totp.verify_code(user.two_factor_secret, code, now=self._clock()):
            raise InvalidTwoFactorCodeError("invalid verification code")

        await self._users.disable_two_factor(user.id)
        logger.info("Two-factor authentication disabled for user %s", user.id)

    async def _require_active_session(self, credential: str, now: datetime.datetime) -> Session:
        session = await self._sessions.find_active(hash_token(credential))
        if session is None or _is_expired(session.expires_at, now):
            raise InvalidOrExpiredSessionError("invalid or expired session")
        return session

    async def _record_login(self, user: User, now: datetime.datetime) -> None:
        try:
            await self._users.record_login(user.id, now)
        except Exception:
            logger.warning("Failed to record last login for user %s", user.id, exc_info=True)

    async def _fail(self, started: float, client_ip: str | None, error: Exception) -> NoReturn:
        await _sleep_to_minimum_failed_duration(started)
        if client_ip and await self._rate_limiter.register_failure(client_ip):
            raise TooManyAttemptsError("too many failed attempts") from error
        raise error


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.UTC)
    return value


def _is_expired(expires_at: datetime.datetime, reference: datetime.datetime) -> bool:
    return _as_utc(expires_at) <= _as_utc(reference)


async def _sleep_to_minimum_failed_duration(started: float) -> None:
    elapsed = time.monotonic() - started
    remaining = MIN_FAILED_LOGIN_RESPONSE_SECONDS - elapsed
    if remaining > 0:
        await asyncio.sleep(remaining)
