"""Tests for per-donor impact."""

import pytest

from conftest import give
from aidledger.models import BeneficiaryRequest, DonationStatus, SignupRequest
from aidledger.services.storage import NotFoundError


@pytest.fixture
def second_beneficiary_request():
    return BeneficiaryRequest(
        name="Marie Mukamana",
        age=31,
        gender="female",
        location="Karongi",
        support_type="health",
    )


class TestImpactAggregator:

    @pytest.mark.asyncio
    async def test_unlinked_allocations_are_not_attributed(
        self, components, donor, admin, beneficiary, second_beneficiary_request,
    ):
        other = await components.beneficiaries.register(second_beneficiary_request, actor_id=admin.id)
        receipt = await give(components, donor.id, 2000)
        pool_donor = await components.accounts.signup(SignupRequest(
            name="Pool Donor", email="pool@example.org", password="secret1",
        ))
        await give(components, pool_donor.id, 5000)

        # X is funded by the donor's own donation, Y from the general pool
        await components.allocations.allocate(
            beneficiary.id, 2000, "education", admin.id, donation_id=receipt.donation.id,
        )
        await components.allocations.allocate(other.id, 1000, "health", admin.id)

        impact = await components.impact.impact_for(donor.id)
        assert impact.beneficiaries_helped == 1
        assert impact.total_donated == 2000
        assert impact.donation_count == 1

    @pytest.mark.asyncio
    async def test_same_beneficiary_counted_once(self, components, donor, admin, beneficiary):
        first = await give(components, donor.id, 3000)
        second = await give(components, donor.id, 3000)
        for donation in (first.donation, second.donation):
            await components.allocations.allocate(
                beneficiary.id, 1000, "education", admin.id, donation_id=donation.id,
            )

        impact = await components.impact.impact_for(donor.id)
        assert impact.beneficiaries_helped == 1

    @pytest.mark.asyncio
    async def test_only_completed_donations_count(self, components, donor, momo):
        momo.script(DonationStatus.FAILED)
        await give(components, donor.id, 1000)
        await give(components, donor.id, 4000)
        await give(components, donor.id, 9000, method="bank_transfer")

        impact = await components.impact.impact_for(donor.id)
        assert impact.total_donated == 4000
        assert impact.donation_count == 1
        assert impact.beneficiaries_helped == 0

    @pytest.mark.asyncio
    async def test_other_donors_money_is_not_attributed(self, components, donor, admin, beneficiary):
        other = await components.accounts.signup(SignupRequest(
            name="Other", email="other@example.org", password="secret1",
        ))
        theirs = await give(components, other.id, 5000)
        await components.allocations.allocate(
            beneficiary.id, 1000, "education", admin.id, donation_id=theirs.donation.id,
        )
        await give(components, donor.id, 1000)

        impact = await components.impact.impact_for(donor.id)
        assert impact.beneficiaries_helped == 0

    @pytest.mark.asyncio
    async def test_unknown_account(self, components):
        with pytest.raises(NotFoundError):
            await components.impact.impact_for(12345)
