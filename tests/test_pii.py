"""Tests for PII filtering."""
import pytest

from tripgate.auth.access import AccessorClass
from tripgate.auth.pii import (
    PII_FIELDS,
    filter_guest_self,
    filter_items,
    filter_participant,
    filter_participants,
    filter_plan,
)
from tripgate.db.models import Item, Participant, Plan
from tripgate.exceptions import Unauthorized


@pytest.fixture
def plan() -> Plan:
    return Plan(
        id="plan-1",
        title="Ski Trip",
        description="Chalet week",
        location="Zermatt",
        start_date="2027-01-10",
        end_date="2027-01-17",
        created_by_user_id="sub-owner",
    )


@pytest.fixture
def participants() -> list[Participant]:
    return [
        Participant(
            id="p-1",
            plan_id="plan-1",
            display_name="Olivia",
            first_name="Olivia",
            last_name="Owner",
            contact_phone="+15550000001",
            contact_email="olivia@example.com",
            role="owner",
            user_id="sub-owner",
            invite_token="inv-1",
            onboarding_completed=True,
        ),
        Participant(
            id="p-2",
            plan_id="plan-1",
            display_name="Alice",
            first_name="Alice",
            last_name="Smith",
            contact_phone="+15551234567",
            contact_email="alice@example.com",
            role="participant",
            invite_token="inv-2",
            group_size=2,
            dietary_notes="vegetarian",
            onboarding_completed=False,
        ),
    ]


@pytest.fixture
def items() -> list[Item]:
    return [
        Item(id="i-1", plan_id="plan-1", name="Skis", quantity=2, notes="rent",
             status="open", assigned_participant_id="p-2"),
    ]


class TestParticipantFilter:

    @pytest.mark.parametrize("accessor", [AccessorClass.OWNER, AccessorClass.PARTICIPANT])
    def test_full_access_sees_contact_details(self, participants, accessor):
        view = filter_participant(participants[1], accessor)

        assert view["contact_phone"] == "+15551234567"
        assert view["contact_email"] == "alice@example.com"
        assert view["last_name"] == "Smith"
        assert view["dietary_notes"] == "vegetarian"

    def test_only_owner_sees_invite_tokens(self, participants):
        assert filter_participant(participants[1], AccessorClass.OWNER)["invite_token"] == "inv-2"
        assert "invite_token" not in filter_participant(participants[1], AccessorClass.PARTICIPANT)

    def test_guest_sees_id_name_role_only(self, participants):
        view = filter_participant(participants[1], AccessorClass.GUEST)
        assert view == {"id": "p-2", "display_name": "Alice", "role": "participant"}

    def test_invite_holder_sees_no_participants(self, participants):
        assert filter_participant(participants[1], AccessorClass.INVITE) is None
        assert filter_participants(participants, AccessorClass.INVITE) == []

    def test_anonymous_fails_closed(self, participants):
        with pytest.raises(Unauthorized):
            filter_participant(participants[0], AccessorClass.ANONYMOUS)
        with pytest.raises(Unauthorized):
            filter_participants(participants, AccessorClass.ANONYMOUS)

    @pytest.mark.parametrize("accessor", [AccessorClass.GUEST, AccessorClass.INVITE])
    def test_no_pii_for_restricted_classes(self, participants, accessor):
        for view in filter_participants(participants, accessor):
            assert not PII_FIELDS & set(view)

    def test_guest_own_record_excludes_pii(self, participants):
        view = filter_guest_self(participants[1])

        assert view == {
            "id": "p-2",
            "display_name": "Alice",
            "role": "participant",
            "group_size": 2,
            "dietary_notes": "vegetarian",
            "onboarding_completed": False,
        }
        assert not PII_FIELDS & set(view)


class TestPlanFilter:

    def test_full_view(self, plan, participants, items):
        view = filter_plan(plan, AccessorClass.OWNER, participants=participants, items=items)

        assert view["title"] == "Ski Trip"
        assert view["created_by_user_id"] == "sub-owner"
        assert view["items"][0]["notes"] == "rent"
        assert len(view["participants"]) == 2
        assert view["participants"][0]["contact_email"] == "olivia@example.com"

    def test_guest_view(self, plan, participants, items):
        view = filter_plan(plan, AccessorClass.GUEST, participants=participants, items=items)

        assert view["title"] == "Ski Trip"
        assert view["location"] == "Zermatt"
        assert view["start_date"] == "2027-01-10"
        assert "created_by_user_id" not in view
        assert view["items"] == [{
            "id": "i-1",
            "name": "Skis",
            "quantity": 2,
            "status": "open",
            "assigned_participant_id": "p-2",
        }]
        assert view["participants"] == [
            {"id": "p-1", "display_name": "Olivia", "role": "owner"},
            {"id": "p-2", "display_name": "Alice", "role": "participant"},
        ]

    def test_landing_view(self, plan, participants, items):
        view = filter_plan(
            plan,
            AccessorClass.INVITE,
            participants=participants,
            items=items,
            owner_display_name="Olivia",
        )
        assert view == {"id": "plan-1", "title": "Ski Trip", "owner_display_name": "Olivia"}

    def test_anonymous_plan_view_fails_closed(self, plan):
        with pytest.raises(Unauthorized):
            filter_plan(plan, AccessorClass.ANONYMOUS)

    def test_items_hidden_from_invite_holders(self, items):
        assert filter_items(items, AccessorClass.INVITE) == []
