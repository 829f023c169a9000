import pytest

from lesson_engine.core.exceptions import NotFoundException, ValidationException
from lesson_engine.models.availability import TeacherAvailabilitySlot
from lesson_engine.services.availability_index import FULL_DAY, AvailabilityIndex
from lesson_engine.utils.time_utils import TimeWindow
from tests.factories.lesson_builders import create_teacher, hm, local_dt, set_weekly_slots

MONDAY = 1
TUESDAY = 2


@pytest.fixture
def index(db, clock):
    return AvailabilityIndex(db, clock)


class TestSlotsForDay:
    def test_teacher_without_windows_is_available_all_day(self, db, index):
        teacher = create_teacher(db)

        assert index.slots_for_day(teacher.id, MONDAY) == [FULL_DAY]
        assert index.slots_for_day(teacher.id, 0) == [TimeWindow(0, 1440)]

    def test_windows_on_other_days_only_mean_unavailable(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(db, teacher, [(TUESDAY, "08:00", "12:00")])

        assert index.slots_for_day(teacher.id, MONDAY) == []

    def test_windows_are_sorted_and_not_merged(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(
            db,
            teacher,
            [(MONDAY, "14:00", "16:00"), (MONDAY, "08:00", "10:00"), (MONDAY, "09:00", "11:00")],
        )

        assert index.slots_for_day(teacher.id, MONDAY) == [
            TimeWindow(hm("08:00"), hm("10:00")),
            TimeWindow(hm("09:00"), hm("11:00")),
            TimeWindow(hm("14:00"), hm("16:00")),
        ]

    @pytest.mark.parametrize("day", [-1, 7])
    def test_invalid_day_of_week(self, db, index, day):
        teacher = create_teacher(db)
        with pytest.raises(ValidationException):
            index.slots_for_day(teacher.id, day)

    def test_weekly_slots_matches_per_day_rule(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(db, teacher, [(MONDAY, "14:00", "16:00")])

        week = index.weekly_slots(teacher.id)
        assert week[MONDAY] == [TimeWindow(840, 960)]
        assert all(week[day] == [] for day in range(7) if day != MONDAY)


class TestAvailabilityAtInstant:
    def test_is_available_at_uses_local_minute(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(db, teacher, [(MONDAY, "14:00", "16:00")])

        assert index.is_available_at(teacher.id, local_dt(2025, 6, 2, 14, 0))
        assert index.is_available_at(teacher.id, local_dt(2025, 6, 2, 15, 59))
        assert not index.is_available_at(teacher.id, local_dt(2025, 6, 2, 16, 0))
        assert not index.is_available_at(teacher.id, local_dt(2025, 6, 3, 14, 0))

    def test_teachers_available_at_lists_active_teachers(self, db, index):
        busy = create_teacher(db, "Busy")
        open_door = create_teacher(db, "Open")
        create_teacher(db, "Gone", is_active=False)
        set_weekly_slots(db, busy, [(TUESDAY, "08:00", "09:00")])

        result = index.teachers_available_at(local_dt(2025, 6, 2, 10, 0))

        assert result == {busy.id: False, open_door.id: True}


class TestReplaceWeeklySlots:
    def test_replaces_the_whole_week(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(db, teacher, [(MONDAY, "08:00", "09:00")])

        created = index.replace_weekly_slots(teacher.id, [(TUESDAY, hm("10:00"), hm("12:00"))])

        assert [(s.day_of_week, s.start_minutes, s.end_minutes) for s in created] == [
            (TUESDAY, 600, 720)
        ]
        stored = db.query(TeacherAvailabilitySlot).filter_by(teacher_id=teacher.id).all()
        assert len(stored) == 1
        assert index.configured_slots(teacher.id)[0].day_of_week == TUESDAY

    def test_empty_week_restores_open_door(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(db, teacher, [(MONDAY, "08:00", "09:00")])

        index.replace_weekly_slots(teacher.id, [])

        assert index.slots_for_day(teacher.id, TUESDAY) == [FULL_DAY]

    def test_invalid_window_changes_nothing(self, db, index):
        teacher = create_teacher(db)
        set_weekly_slots(db, teacher, [(MONDAY, "08:00", "09:00")])

        with pytest.raises(ValidationException):
            index.replace_weekly_slots(teacher.id, [(MONDAY, hm("12:00"), hm("11:00"))])

        assert index.slots_for_day(teacher.id, MONDAY) == [TimeWindow(480, 540)]

    def test_unknown_teacher(self, index):
        with pytest.raises(NotFoundException):
            index.replace_weekly_slots("01ZZZZZZZZZZZZZZZZZZZZZZZZ", [])
        with pytest.raises(NotFoundException):
            index.configured_slots("01ZZZZZZZZZZZZZZZZZZZZZZZZ")
