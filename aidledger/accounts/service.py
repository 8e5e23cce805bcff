"""
Account Service

Signup, login and the administrator checks the HTTP layer needs.

DESIGN DECISION: Credentials are stored as salted PBKDF2-SHA256 hashes in
the form pbkdf2_sha256$<iterations>$<salt>$<hash>. The iteration count is
part of the stored value, so it can be raised later without invalidating
existing hashes.

Emails are stored lower-cased; lookups are case-insensitive.
"""

import hashlib
import hmac
import secrets
from typing import Optional

import structlog

from aidledger.audit import AuditLogger
from aidledger.config import AdminSettings, AppSettings, get_settings
from aidledger.ledger.errors import (
    AuthenticationError,
    PermissionDeniedError,
    ValidationError,
)
from aidledger.models.ledger import Account, SignupRequest, ValidationIssue
from aidledger.services.storage import (
    DuplicateError,
    LedgerStorageInterface,
    LedgerTransaction,
)
from aidledger.validation import AccountValidator

logger = structlog.get_logger(__name__)

HASH_ALGORITHM = "pbkdf2_sha256"
DEFAULT_ITERATIONS = 260_000


def hash_password(password: str, iterations: int = DEFAULT_ITERATIONS) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations
    )
    return f"{HASH_ALGORITHM}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, iterations, salt, expected = encoded.split("$")
        rounds = int(iterations)
    except ValueError:
        return False
    if algorithm != HASH_ALGORITHM:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds
    )
    return hmac.compare_digest(digest.hex(), expected)


class AccountService:
    """Creates and authenticates donor and administrator accounts."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        app_settings: Optional[AppSettings] = None,
        admin_settings: Optional[AdminSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        hash_iterations: int = DEFAULT_ITERATIONS,
    ):
        self._storage = storage
        self._validator = AccountValidator(app_settings or get_settings().app)
        self._admin_settings = admin_settings or get_settings().admin
        self._audit = audit_logger or AuditLogger()
        self._iterations = hash_iterations

    async def signup(self, request: SignupRequest) -> Account:
        """
        Create a donor account.

        Raises:
            ValidationError: Missing or malformed fields
            DuplicateError: The email is already registered
        """
        result = self._validator.validate_signup(request)
        if result.has_errors:
            error = ValidationError.from_result(result)
            await self._audit.log_validation_failed(
                subject="account",
                issues=error.issues_as_dicts(),
            )
            raise error

        account = Account(
            name=request.name,
            email=request.email.lower(),
            phone=request.phone or None,
            password_hash=hash_password(request.password, self._iterations),
        )

        def work(tx: LedgerTransaction) -> Account:
            if tx.get_account_by_email(account.email) is not None:
                raise DuplicateError("An account with this email already exists")
            return tx.insert_account(account)

        stored = await self._storage.transaction(work)
        logger.info("account_created", account_id=stored.id)
        await self._audit.log_account_created(
            account_id=stored.id,
            email=stored.email,
            is_admin=stored.is_admin,
        )
        return stored

    async def login(
        self,
        email: Optional[str],
        password: Optional[str],
        require_admin: bool = False,
    ) -> Account:
        """
        Check credentials.

        Raises:
            ValidationError: Email or password missing
            AuthenticationError: Unknown email or wrong password
            PermissionDeniedError: require_admin and the account is not an admin
        """
        if not email or not password:
            raise ValidationError(
                "Email and password are required",
                issues=[ValidationIssue(
                    field="credentials",
                    issue_type="missing",
                    message="Email and password are required",
                )],
            )

        email = email.strip().lower()
        account = await self._storage.transaction(
            lambda tx: tx.get_account_by_email(email)
        )

        if account is None or not verify_password(password, account.password_hash):
            await self._audit.log_login(email=email, succeeded=False)
            raise AuthenticationError("Invalid email or password")

        if require_admin and not account.is_admin:
            await self._audit.log_login(email=email, succeeded=False, account_id=account.id)
            raise PermissionDeniedError("Admin access required")

        await self._audit.log_login(email=email, succeeded=True, account_id=account.id)
        return account

    async def get(self, account_id: int) -> Optional[Account]:
        return await self._storage.transaction(lambda tx: tx.get_account(account_id))

    async def authenticate(self, account_id: Optional[int]) -> Account:
        """
        Resolve the caller's identity.

        Raises:
            AuthenticationError: No identity, or an identity that does not exist
        """
        if account_id is None:
            raise AuthenticationError("Authentication required")
        account = await self.get(account_id)
        if account is None:
            raise AuthenticationError("Invalid user")
        return account

    async def require_admin(self, account_id: Optional[int]) -> Account:
        """
        Resolve the caller and check they are an administrator.

        Raises:
            AuthenticationError: Unknown caller
            PermissionDeniedError: The caller is not an administrator
        """
        account = await self.authenticate(account_id)
        if not account.is_admin:
            raise PermissionDeniedError("Admin access required")
        return account

    async def ensure_default_admin(self) -> Account:
        """Create the configured administrator unless the email is taken."""
        settings = self._admin_settings
        email = settings.email.lower()

        def work(tx: LedgerTransaction) -> tuple[Account, bool]:
            existing = tx.get_account_by_email(email)
            if existing is not None:
                return existing, False
            return tx.insert_account(Account(
                name=settings.name,
                email=email,
                password_hash=hash_password(settings.password, self._iterations),
                is_admin=True,
            )), True

        account, created = await self._storage.transaction(work)
        if created:
            logger.info("default_admin_created", account_id=account.id, email=email)
            await self._audit.log_account_created(
                account_id=account.id,
                email=email,
                is_admin=True,
            )
        return account
