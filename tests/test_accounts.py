"""Tests for accounts and the beneficiary registry."""

import pytest

from aidledger.accounts import hash_password, verify_password
from aidledger.ledger import AuthenticationError, PermissionDeniedError, ValidationError
from aidledger.models import BeneficiaryRequest, BeneficiaryStatus, SignupRequest, SupportType
from aidledger.services.storage import DuplicateError


class TestPasswordHashing:

    def test_round_trip(self):
        encoded = hash_password("secret1", iterations=1_000)
        assert encoded.startswith("pbkdf2_sha256$1000$")
        assert verify_password("secret1", encoded)
        assert not verify_password("secret2", encoded)

    def test_salted(self):
        assert hash_password("same", iterations=1_000) != hash_password("same", iterations=1_000)

    @pytest.mark.parametrize("encoded", ["", "plain", "md5$1$salt$hash", "pbkdf2_sha256$x$salt$hash"])
    def test_malformed_hash_never_verifies(self, encoded):
        assert not verify_password("anything", encoded)


class TestAccountService:

    @pytest.mark.asyncio
    async def test_signup(self, components, donor):
        assert donor.id is not None
        assert donor.is_admin is False
        assert donor.email == "alice@example.org"
        assert donor.password_hash != "secret1"

    @pytest.mark.asyncio
    async def test_duplicate_email_is_case_insensitive(self, components, donor):
        with pytest.raises(DuplicateError, match="already exists"):
            await components.accounts.signup(SignupRequest(
                name="Alice Again", email="ALICE@example.org", password="secret1",
            ))

    @pytest.mark.asyncio
    async def test_signup_validation(self, components):
        with pytest.raises(ValidationError, match="at least 6 characters"):
            await components.accounts.signup(SignupRequest(
                name="Short", email="short@example.org", password="123",
            ))

    @pytest.mark.asyncio
    async def test_login(self, components, donor):
        account = await components.accounts.login("Alice@Example.org", "secret1")
        assert account.id == donor.id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, components, donor):
        with pytest.raises(AuthenticationError, match="Invalid email or password"):
            await components.accounts.login("alice@example.org", "wrong-password")

    @pytest.mark.asyncio
    async def test_login_missing_fields(self, components):
        with pytest.raises(ValidationError, match="Email and password are required"):
            await components.accounts.login("alice@example.org", None)

    @pytest.mark.asyncio
    async def test_admin_login_requires_admin(self, components, donor):
        with pytest.raises(PermissionDeniedError):
            await components.accounts.login("alice@example.org", "secret1", require_admin=True)

    @pytest.mark.asyncio
    async def test_default_admin_is_seeded_once(self, components, admin):
        again = await components.accounts.ensure_default_admin()
        assert again.id == admin.id
        assert admin.is_admin is True

        account = await components.accounts.login("admin@empowerkibuye.org", "admin123", require_admin=True)
        assert account.id == admin.id

    @pytest.mark.asyncio
    async def test_require_admin(self, components, admin, donor):
        assert (await components.accounts.require_admin(admin.id)).id == admin.id
        with pytest.raises(PermissionDeniedError):
            await components.accounts.require_admin(donor.id)
        with pytest.raises(AuthenticationError, match="Authentication required"):
            await components.accounts.require_admin(None)
        with pytest.raises(AuthenticationError, match="Invalid user"):
            await components.accounts.require_admin(999)


class TestBeneficiaryRegistry:

    @pytest.mark.asyncio
    async def test_register_is_active_with_no_support(self, beneficiary):
        assert beneficiary.status == BeneficiaryStatus.ACTIVE
        assert beneficiary.support_received == 0
        assert beneficiary.support_type == SupportType.EDUCATION

    @pytest.mark.asyncio
    async def test_register_validation(self, components, admin):
        with pytest.raises(ValidationError, match="Invalid support type"):
            await components.beneficiaries.register(
                BeneficiaryRequest(name="X", age=3, gender="female", support_type="food"),
                actor_id=admin.id,
            )
        assert await components.beneficiaries.list_all() == []

    @pytest.mark.asyncio
    async def test_list_all_newest_first(self, components, admin, beneficiary):
        later = await components.beneficiaries.register(
            BeneficiaryRequest(name="Later", age=40, gender="male", support_type="skills"),
            actor_id=admin.id,
        )
        listed = await components.beneficiaries.list_all()
        assert [b.id for b in listed] == [later.id, beneficiary.id]

    @pytest.mark.asyncio
    async def test_long_free_text_is_stored(self, components, admin):
        notes = "x" * 1500
        registered = await components.beneficiaries.register(
            BeneficiaryRequest(
                name="N" * 300,
                age=9,
                gender="f" * 40,
                location="L" * 300,
                support_type="health",
                notes=notes,
            ),
            actor_id=admin.id,
        )
        listed = await components.beneficiaries.list_all()
        assert listed[0].id == registered.id
        assert listed[0].notes == notes


class TestLongSignupFields:

    @pytest.mark.asyncio
    async def test_long_name_and_email(self, components):
        name = "Uwimana " * 40
        email = ("a" * 250) + "@example.org"
        account = await components.accounts.signup(SignupRequest(
            name=name, email=email, password="secret1",
        ))
        assert account.name == name.strip()
        assert (await components.accounts.login(email, "secret1")).id == account.id
