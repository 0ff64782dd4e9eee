"""
Tests for crew roster operations and the crew ledger they write.
"""
import uuid

import pytest

from installhub.errors import NotFound, ValidationError
from installhub.services import roster

from conftest import ACTOR_ID, FIRM_ID, make_crew


class TestCrew:
    def test_create_writes_crew_created(self, db):
        crew = roster.create_crew(
            db,
            {"firm_id": FIRM_ID, "name": "Roof Team", "unique_number": "BR-0100", "leader_name": "Ada"},
            ACTOR_ID,
        )
        assert crew.status == "active"
        assert not crew.archived
        history = roster.get_crew_history(db, crew.id)
        assert [h.change_type for h in history] == ["crew_created"]
        assert history[0].user_id == ACTOR_ID

    def test_create_requires_name(self, db):
        with pytest.raises(ValidationError):
            roster.create_crew(db, {"firm_id": FIRM_ID, "name": " ", "unique_number": "BR-1", "leader_name": "Ada"})

    def test_invalid_status_rejected(self, db):
        with pytest.raises(ValidationError):
            roster.create_crew(
                db,
                {"firm_id": FIRM_ID, "name": "X", "unique_number": "BR-1", "leader_name": "Ada", "status": "asleep"},
            )

    def test_update_writes_one_entry_per_changed_field(self, db, crew):
        roster.update_crew(db, crew.id, {"name": crew.name, "phone": "+49 1", "status": "vacation"}, ACTOR_ID)
        updates = [h for h in roster.get_crew_history(db, crew.id, newest_first=False) if h.change_type == "crew_updated"]
        assert sorted(h.field_name for h in updates) == ["phone", "status"]
        status_entry = next(h for h in updates if h.field_name == "status")
        assert (status_entry.old_value, status_entry.new_value) == ("active", "vacation")

    def test_update_rejects_unknown_field(self, db, crew):
        with pytest.raises(ValidationError):
            roster.update_crew(db, crew.id, {"firm_id": str(uuid.uuid4())})

    def test_archive(self, db, crew):
        roster.archive_crew(db, crew.id, ACTOR_ID)
        assert crew.archived
        assert roster.get_crew_history(db, crew.id)[0].change_type == "crew_archived"
        assert crew not in roster.list_crews_for_firm(db, FIRM_ID)
        assert crew in roster.list_crews_for_firm(db, FIRM_ID, include_archived=True)

    def test_archive_twice_is_noop(self, db, crew):
        roster.archive_crew(db, crew.id)
        count = len(roster.get_crew_history(db, crew.id))
        roster.archive_crew(db, crew.id)
        assert len(roster.get_crew_history(db, crew.id)) == count

    def test_missing_crew(self, db):
        with pytest.raises(NotFound):
            roster.get_crew_history(db, uuid.uuid4())

    def test_all_digit_firm_id_round_trips(self, db):
        firm_id = uuid.UUID("12345678-1234-1234-1234-123456789012")
        crew = make_crew(db, name="Digits", firm_id=firm_id)
        db.expire_all()
        assert db.get(type(crew), crew.id).firm_id == firm_id
        assert [c.id for c in roster.list_crews_for_firm(db, firm_id)] == [crew.id]
        assert [m.crew_id for m in roster.list_members(db, crew.id)] == [crew.id, crew.id]


class TestMembers:
    def test_add_member_writes_member_added(self, db):
        crew = make_crew(db, members=())
        member = roster.add_member(
            db, crew.id,
            {"first_name": "Carl", "last_name": "Meyer", "unique_number": "WRK-9001", "role": "specialist"},
            ACTOR_ID,
        )
        entry = roster.get_crew_history(db, crew.id)[0]
        assert entry.change_type == "member_added"
        assert entry.member_id == member.id
        assert entry.member_name == "Carl Meyer"

    def test_member_number_is_unique(self, db, crew):
        existing = roster.list_members(db, crew.id)[0]
        with pytest.raises(ValidationError):
            roster.add_member(
                db, crew.id,
                {"first_name": "Dup", "last_name": "Licate", "unique_number": existing.unique_number},
            )

    def test_archived_crew_accepts_no_members(self, db, crew):
        roster.archive_crew(db, crew.id)
        with pytest.raises(NotFound):
            roster.add_member(db, crew.id, {"first_name": "Late", "last_name": "Joiner", "unique_number": "WRK-7777"})

    def test_invalid_role_rejected(self, db, crew):
        with pytest.raises(ValidationError):
            roster.add_member(
                db, crew.id,
                {"first_name": "Eve", "last_name": "Roe", "unique_number": "WRK-5555", "role": "boss"},
            )

    def test_update_member(self, db, crew):
        member = roster.list_members(db, crew.id)[1]
        roster.update_member(db, member.id, {"phone": "+49 999", "role": "specialist"}, ACTOR_ID)
        entries = [h for h in roster.get_crew_history(db, crew.id) if h.change_type == "member_updated"]
        assert sorted(h.field_name for h in entries) == ["phone", "role"]
        assert all(h.member_id == member.id for h in entries)

    def test_archive_member_is_soft(self, db, crew):
        member = roster.list_members(db, crew.id)[1]
        roster.archive_member(db, member.id, ACTOR_ID)
        assert member.archived
        assert member not in roster.list_members(db, crew.id)
        assert member in roster.list_members(db, crew.id, include_archived=True)
        entry = roster.get_crew_history(db, crew.id)[0]
        assert entry.change_type == "member_removed"
        assert entry.member_name == roster.member_display_name(member)

    def test_archived_member_cannot_be_edited(self, db, crew):
        member = roster.list_members(db, crew.id)[1]
        roster.archive_member(db, member.id)
        with pytest.raises(NotFound):
            roster.update_member(db, member.id, {"phone": "1"})
