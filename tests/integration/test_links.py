"""
Integration tests for campaign referral links.
"""

import pytest

from refnet.services.referral import link_manager
from refnet.utils.exceptions import (
    CodeGenerationExhausted,
    DuplicateMember,
    LinkNotFound,
    MemberNotFound,
    ValidationError,
)

pytestmark = pytest.mark.slow


@pytest.fixture
async def owner(service):
    return await service.enroll("owner")


class TestCreateLink:
    """Test link creation."""

    async def test_create_link(self, service, owner, clock):
        link = await service.create_link(owner.id, "  spring promo  ")

        assert link.owner_id == owner.id
        assert link.campaign_label == "spring promo"
        assert link.click_count == 0
        assert link.link_code

    async def test_blank_label_stored_as_none(self, service, owner):
        link = await service.create_link(owner.id, "   ")

        assert link.campaign_label is None

    async def test_label_too_long(self, service, owner):
        with pytest.raises(ValidationError):
            await service.create_link(owner.id, "x" * 101)

    async def test_unknown_owner(self, service):
        with pytest.raises(MemberNotFound):
            await service.create_link("ghost")

    async def test_links_for(self, service, owner):
        first = await service.create_link(owner.id, "a")
        second = await service.create_link(owner.id, "b")

        links = await service.links_for(owner.id)

        assert {link.link_code for link in links} == {
            first.link_code,
            second.link_code,
        }
        # Same timestamp, so the later id comes first
        assert links[0].id == second.id


class TestResolveLink:
    """Test clicks and link resolution."""

    async def test_record_click(self, service, owner):
        link = await service.create_link(owner.id)

        await service.record_click(link.link_code)
        updated = await service.record_click(link.link_code.lower())

        assert updated.click_count == 2

    async def test_click_unknown_link(self, service):
        with pytest.raises(LinkNotFound):
            await service.record_click("NOPE1234")

    async def test_resolve_link(self, service, owner):
        link = await service.create_link(owner.id)

        resolved = await service.resolve_link(f" {link.link_code.lower()} ")

        assert resolved.id == owner.id

    async def test_resolve_unknown_link(self, service):
        with pytest.raises(LinkNotFound):
            await service.resolve_link("NOPE1234")

    async def test_enroll_via_link(self, service, owner):
        link = await service.create_link(owner.id, "newsletter")

        member = await service.enroll_via_link("recruit", link.link_code)

        assert member.sponsor_id == owner.id
        assert member.generation == owner.generation + 1
        descendants = await service.descendants_of(owner.id)
        assert [d.id for d in descendants] == ["recruit"]

    async def test_enroll_via_unknown_link(self, service):
        with pytest.raises(LinkNotFound):
            await service.enroll_via_link("recruit", "NOPE1234")

    async def test_enroll_via_link_duplicate(self, service, owner):
        link = await service.create_link(owner.id)
        await service.enroll_via_link("recruit", link.link_code)

        with pytest.raises(DuplicateMember):
            await service.enroll_via_link("recruit", link.link_code)


class TestLinkCodeCollisions:
    """Test link codes taken between the uniqueness check and commit."""

    @staticmethod
    def issue_codes(monkeypatch, codes):
        issued = iter(codes)

        async def fake_generate_unique_code(is_taken, length, max_attempts, namespace):
            return next(issued)

        monkeypatch.setattr(
            link_manager, "generate_unique_code", fake_generate_unique_code
        )

    async def test_collision_regenerates_code(self, service, owner, monkeypatch):
        taken = await service.create_link(owner.id, "first")
        self.issue_codes(monkeypatch, [taken.link_code, "FRESH23456"])

        link = await service.create_link(owner.id, "second")

        assert link.link_code == "FRESH23456"
        assert link.campaign_label == "second"
        assert len(await service.links_for(owner.id)) == 2

    async def test_collisions_exhaust_attempts(
        self, service, owner, integration_config, monkeypatch
    ):
        taken = await service.create_link(owner.id)
        attempts = integration_config.code_generation_max_attempts
        self.issue_codes(monkeypatch, [taken.link_code] * attempts)

        with pytest.raises(CodeGenerationExhausted):
            await service.create_link(owner.id)

        assert len(await service.links_for(owner.id)) == 1
