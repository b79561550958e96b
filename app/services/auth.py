"""
Credential service: account provisioning and password authentication.

Every outcome is returned as one of a closed set of result variants so callers
branch on type instead of matching error messages. Store and bcrypt errors are
translated here and never reach the caller.

The email pre-check in create_user only gives a cheap rejection before paying
for a bcrypt hash. Race safety between that check and the insert comes from the
unique index on users.email; a conflict raised by the insert is reported the
same way as a failed insert (ProvisioningFailure).
"""

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from app.core.security import PasswordHashingError, hash_password, verify_password
from app.models import User
from app.models.user import DEFAULT_ROLE, NAME_MAX_LEN, NAME_MIN_LEN, USER_ROLES
from app.services.user_store import UserAlreadyExistsError, UserStore, UserStoreError

logger = logging.getLogger(__name__)

# Throwaway hashes checked when an email is unknown, one per bcrypt cost, shared by all services.
_dummy_hashes: dict[int | None, str] = {}


@dataclass(frozen=True)
class AuthenticatedUser:
    """A user record as exposed to callers. Has no password field."""

    id: int
    name: str
    email: str
    role: str
    created_at: datetime

    @classmethod
    def from_model(cls, user: User) -> "AuthenticatedUser":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
        )


@dataclass(frozen=True)
class Ok:
    user: AuthenticatedUser


@dataclass(frozen=True)
class DuplicateAccount:
    email: str


@dataclass(frozen=True)
class InvalidCredentials:
    """Unknown email or wrong password; the two are deliberately indistinguishable."""


@dataclass(frozen=True)
class HashingFailure:
    pass


@dataclass(frozen=True)
class ProvisioningFailure:
    """The store failed while creating the account, including a late duplicate."""


@dataclass(frozen=True)
class LookupFailure:
    """The store failed while reading an account during sign-in."""


CreateUserResult = Ok | DuplicateAccount | HashingFailure | ProvisioningFailure
AuthenticateResult = Ok | InvalidCredentials | HashingFailure | LookupFailure


def normalize_email(email: str) -> str:
    """Trim and lowercase an email; applying it twice changes nothing."""
    return email.strip().lower()


class CredentialService:
    """Creates and authenticates users against an injected UserStore."""

    def __init__(self, store: UserStore, bcrypt_rounds: int | None = None) -> None:
        self.store = store
        self.bcrypt_rounds = bcrypt_rounds

    async def create_user(
        self,
        name: str,
        email: str,
        password: str,
        role: str = DEFAULT_ROLE,
    ) -> CreateUserResult:
        """
        Provision an account.

        Returns DuplicateAccount without hashing when the email is taken,
        otherwise hashes the password, inserts exactly one row and returns Ok.
        A name outside 2-255 characters or an unknown role is a caller error
        and raises ValueError.
        """
        name = name.strip()
        if not (NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN):
            raise ValueError(f"name must be {NAME_MIN_LEN}-{NAME_MAX_LEN} characters")
        email = normalize_email(email)
        role = role or DEFAULT_ROLE
        if role not in USER_ROLES:
            raise ValueError(f"role must be one of {', '.join(USER_ROLES)}")

        try:
            existing = await asyncio.to_thread(self.store.get_by_email, email)
        except UserStoreError as e:
            logger.error("Error creating user: %s", e.message)
            return ProvisioningFailure()
        if existing is not None:
            logger.warning("Sign-up rejected: email already registered", extra={"email": email})
            return DuplicateAccount(email=email)

        try:
            password_hash = await hash_password(password, rounds=self.bcrypt_rounds)
        except PasswordHashingError as e:
            logger.error("Error creating user: %s", e.message)
            return HashingFailure()

        try:
            user = await asyncio.to_thread(
                self.store.insert,
                name=name,
                email=email,
                password_hash=password_hash,
                role=role,
            )
        except UserAlreadyExistsError:
            logger.warning(
                "Sign-up lost a race on the email unique index", extra={"email": email}
            )
            return ProvisioningFailure()
        except UserStoreError as e:
            logger.error("Error creating user: %s", e.message)
            return ProvisioningFailure()

        logger.info("User %s created successfully.", user.email)
        return Ok(user=AuthenticatedUser.from_model(user))

    async def authenticate(self, email: str, password: str) -> AuthenticateResult:
        """
        Check an email/password pair.

        An unknown email still pays for one bcrypt verification (against a
        throwaway hash) so both InvalidCredentials paths take comparable time.
        """
        email = normalize_email(email)
        try:
            user = await asyncio.to_thread(self.store.get_by_email, email)
        except UserStoreError as e:
            logger.error("Error authenticating user: %s", e.message)
            return LookupFailure()

        try:
            if user is None:
                await verify_password(password, await self._get_dummy_hash())
                logger.warning("Sign-in rejected: invalid credentials")
                return InvalidCredentials()
            if not await verify_password(password, user.password):
                logger.warning("Sign-in rejected: invalid credentials")
                return InvalidCredentials()
        except PasswordHashingError as e:
            logger.error("Error authenticating user: %s", e.message)
            return HashingFailure()

        logger.info("User %s authenticated successfully.", user.email)
        return Ok(user=AuthenticatedUser.from_model(user))

    async def _get_dummy_hash(self) -> str:
        dummy = _dummy_hashes.get(self.bcrypt_rounds)
        if dummy is None:
            dummy = await hash_password(secrets.token_urlsafe(32), rounds=self.bcrypt_rounds)
            _dummy_hashes[self.bcrypt_rounds] = dummy
        return dummy
