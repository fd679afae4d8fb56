"""AppointmentRepository queries against SQLite."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
import pytest

from app.core.exceptions import RepositoryException
from app.models.appointment import AppointmentStatus
from app.repositories.factory import RepositoryFactory
from support import COURSE_ID, OTHER_COURSE_ID, OTHER_STUDENT_ID, STUDENT_ID

START = datetime(2030, 1, 7, 15, 0, tzinfo=timezone.utc)
HOUR = timedelta(hours=1)
END = START + HOUR


@pytest.fixture
def repository(db):
    return RepositoryFactory.create_appointment_repository(db)


@pytest.fixture
def make(repository, db):
    def _make(offset_minutes=0, duration=60, **overrides):
        fields = dict(
            student_id=STUDENT_ID,
            course_id=COURSE_ID,
            scheduled_at=START + timedelta(minutes=offset_minutes),
            duration_minutes=duration,
            amount=Decimal("80.00"),
            currency="cad",
        )
        fields.update(overrides)
        appointment = repository.create(**fields)
        db.commit()
        return appointment

    return _make


class TestGetOverlapping:
    def test_half_open_boundaries(self, repository, make):
        make()
        assert repository.get_overlapping(COURSE_ID, START + timedelta(hours=1), END + HOUR) == []
        assert repository.get_overlapping(COURSE_ID, START - timedelta(hours=1), START) == []
        touching_end = repository.get_overlapping(
            COURSE_ID, START + timedelta(minutes=59), END + HOUR
        )
        assert len(touching_end) == 1

    def test_ignores_inactive_and_other_courses(self, repository, make):
        make(status=AppointmentStatus.CANCELLED.value)
        make(course_id=OTHER_COURSE_ID)
        make(offset_minutes=120, status=AppointmentStatus.COMPLETED.value)
        assert repository.get_overlapping(COURSE_ID, START, START + timedelta(hours=3)) == []

    def test_exclude_ids(self, repository, make):
        own = make()
        assert repository.get_overlapping(COURSE_ID, START, END, exclude_ids=[own.id]) == []


class TestConstraints:
    def test_ends_at_is_derived(self, make):
        appointment = make(duration=90)
        assert appointment.ends_at == START + timedelta(minutes=90)

    def test_duplicate_active_start_rejected(self, make):
        make()
        with pytest.raises(RepositoryException) as exc_info:
            make(student_id=OTHER_STUDENT_ID)
        assert isinstance(exc_info.value.__cause__, IntegrityError)

    def test_cancelled_start_can_be_rebooked(self, make):
        make(status=AppointmentStatus.CANCELLED.value)
        assert make(student_id=OTHER_STUDENT_ID).status == AppointmentStatus.PENDING.value


class TestPaymentReference:
    def test_attach_only_fills_empty_references(self, repository, make, db):
        first = make()
        second = make(offset_minutes=60, payment_reference="pi_existing")

        updated = repository.attach_payment_reference([first.id, second.id], "pi_new")
        db.commit()

        assert updated == 1
        assert first.payment_reference == "pi_new"
        assert second.payment_reference == "pi_existing"

    def test_lookup_scoped_to_student(self, repository, make):
        make(payment_reference="pi_1")
        make(offset_minutes=60, payment_reference="pi_1")
        assert len(repository.get_by_payment_reference("pi_1")) == 2
        assert len(repository.get_by_payment_reference("pi_1", student_id=STUDENT_ID)) == 2
        assert repository.get_by_payment_reference("pi_1", student_id=OTHER_STUDENT_ID) == []

    def test_confirm_if_pending_only_once(self, repository, make, db):
        appointment = make(payment_reference="pi_1")
        confirmed_at = START - timedelta(days=1)

        assert repository.confirm_if_pending(appointment.id, confirmed_at) is True
        assert repository.confirm_if_pending(appointment.id, confirmed_at) is False
        db.commit()

        assert appointment.status == AppointmentStatus.CONFIRMED.value
        assert appointment.confirmed_at == confirmed_at

    def test_confirm_skips_cancelled(self, repository, make):
        appointment = make(status=AppointmentStatus.CANCELLED.value)
        assert repository.confirm_if_pending(appointment.id, START) is False


class TestListForStudent:
    def test_newest_first_with_cursor(self, repository, make):
        ids = [make(offset_minutes=60 * i).id for i in range(3)]
        make(offset_minutes=300, student_id=OTHER_STUDENT_ID)

        first_page = repository.list_for_student(STUDENT_ID, limit=2)
        assert [a.id for a in first_page] == [ids[2], ids[1], ids[0]]

        second_page = repository.list_for_student(STUDENT_ID, cursor=ids[1], limit=2)
        assert [a.id for a in second_page] == [ids[0]]

    def test_status_and_date_filters(self, repository, make):
        make(status=AppointmentStatus.CONFIRMED.value)
        make(offset_minutes=60)
        make(offset_minutes=60 * 24, status=AppointmentStatus.CONFIRMED.value)

        confirmed = repository.list_for_student(
            STUDENT_ID, statuses=[AppointmentStatus.CONFIRMED.value]
        )
        assert len(confirmed) == 2

        same_day = repository.list_for_student(
            STUDENT_ID, date_from=START, date_to=START + timedelta(hours=12)
        )
        assert len(same_day) == 2


class TestLocking:
    def test_sqlite_lock_is_a_no_op(self, repository, make):
        appointment = make()
        repository.lock_course_schedule(COURSE_ID)
        assert repository.get_for_update(appointment.id) is appointment
        assert repository.dialect_name == "sqlite"
