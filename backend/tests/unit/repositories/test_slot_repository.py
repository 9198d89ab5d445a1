from clubdesk.core.enums import AssignmentStatus
from clubdesk.repositories.slot_repository import SlotRepository


def test_assignment_queries(unit_db, builder, world):
    builder.assign("01MEMBER00000000000000000C", world.monday, status=AssignmentStatus.DROPPED.value)
    repository = SlotRepository(unit_db)

    assert repository.active_assignment_count(world.monday.id) == 2
    assert repository.has_active_assignment(world.member, world.monday.id)
    assert not repository.has_active_assignment("01MEMBER00000000000000000C", world.monday.id)
    assert repository.active_slot_ids_for_member(world.member) == [world.monday.id]


def test_list_program_slots_skips_inactive_and_excluded(unit_db, builder, world):
    builder.slot(world.program, "friday", is_active=False)
    repository = SlotRepository(unit_db)

    slots = repository.list_program_slots(world.program.id, exclude_slot_ids=[world.monday.id])

    assert {s.id for s in slots} == {world.wednesday.id, world.thursday.id}


def test_slot_venue_comes_from_program(unit_db, world):
    slot = SlotRepository(unit_db).get_slot(world.wednesday.id)

    assert slot.venue_id == world.venue.id
    assert slot.formatted_time == "5:00 PM - 6:00 PM"


def test_get_for_update_locks_the_slot_row(unit_db, world, monkeypatch):
    from sqlalchemy.dialects import postgresql

    repository = SlotRepository(unit_db)
    issued = []
    real_execute = repository._execute_query

    def recording_execute(query):
        issued.append(str(query.statement.compile(dialect=postgresql.dialect())))
        return real_execute(query)

    monkeypatch.setattr(repository, "_execute_query", recording_execute)

    assert repository.get_for_update(world.wednesday.id).id == world.wednesday.id
    assert repository.get_for_update("01NOSUCHSLOT00000000000000") is None
    assert all(sql.rstrip().endswith("FOR UPDATE") for sql in issued)
    assert len(issued) == 2
