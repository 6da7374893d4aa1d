from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta

import pytest

from src.school_workflow.school_workflow.attendance.model import AttendanceFact
from src.school_workflow.school_workflow.container import assemble_container
from src.school_workflow.school_workflow.core.enums import Role
from src.school_workflow.school_workflow.identity.model import Actor
from src.school_workflow.school_workflow.ledger.model import ClassPointsRow, LedgerEntry, StudentPointsRow
from src.school_workflow.school_workflow.timeline.model import TimelineEntry
from src.school_workflow.school_workflow.workflow.model import WorkItem


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeWorkItemRepo:
    """Thread-safe; honours the conditional status update contract."""

    def __init__(self):
        self._lock = threading.RLock()
        self._items: dict[int, WorkItem] = {}
        self._next_id = 1
        self.on_get = None

    def snapshot(self):
        with self._lock:
            return dict(self._items), self._next_id

    def restore(self, state) -> None:
        with self._lock:
            self._items, self._next_id = dict(state[0]), state[1]

    def get(self, entity_type, item_id):
        if self.on_get is not None:
            self.on_get()
        with self._lock:
            item = self._items.get(int(item_id))
        if item is None or item.entity_type != entity_type:
            return None
        return item

    def _insert(self, **fields) -> int:
        with self._lock:
            item_id = self._next_id
            self._next_id += 1
            self._items[item_id] = WorkItem(item_id=item_id, **fields)
            return item_id

    def create(self, *, entity_type, status, created_by, created_at, attachments=(), **fields):
        return self._insert(
            entity_type=entity_type,
            status=status,
            created_by=int(created_by),
            created_at=created_at,
            attachments=tuple(attachments),
            **fields,
        )

    def create_revision(self, *, previous, status, created_by, created_at, description, attachments=()):
        with self._lock:
            if self.find_successor(report_id=previous.item_id) is not None:
                return None
            return self._insert(
                entity_type=previous.entity_type,
                status=status,
                created_by=int(created_by),
                created_at=created_at,
                title=previous.title,
                description=description,
                category=previous.category,
                responsible_id=previous.responsible_id,
                task_id=previous.task_id,
                previous_report_id=previous.item_id,
                attachments=tuple(attachments),
            )

    def find_successor(self, *, report_id):
        with self._lock:
            for item in self._items.values():
                if item.previous_report_id == int(report_id):
                    return item.item_id
        return None

    def update_status(self, *, entity_type, item_id, expected, new_status, updated_at, changes=None):
        with self._lock:
            item = self._items.get(int(item_id))
            if item is None or item.entity_type != entity_type or item.status != expected:
                return False
            self._items[item.item_id] = dataclasses.replace(
                item, status=new_status, updated_at=updated_at, **dict(changes or {})
            )
            return True

    def list(self, *, entity_type, status=None, created_by=None, student_id=None, limit=200):
        with self._lock:
            items = [i for i in self._items.values() if i.entity_type == entity_type]
        if status is not None:
            items = [i for i in items if i.status == status]
        if created_by is not None:
            items = [i for i in items if i.created_by == int(created_by)]
        if student_id is not None:
            items = [i for i in items if i.student_id == int(student_id)]
        items.sort(key=lambda i: (i.created_at, i.item_id), reverse=True)
        return items[: int(limit)]


class FakeTimelineRepo:
    def __init__(self):
        self._lock = threading.RLock()
        self.entries: list[TimelineEntry] = []

    def snapshot(self):
        with self._lock:
            return list(self.entries)

    def restore(self, state) -> None:
        with self._lock:
            self.entries = list(state)

    def insert(self, *, entity_type, work_item_id, action_type, performer_id, created_at, to_user_id=None, note=None):
        with self._lock:
            entry_id = len(self.entries) + 1
            self.entries.append(
                TimelineEntry(
                    entry_id=entry_id,
                    entity_type=entity_type,
                    work_item_id=int(work_item_id),
                    action_type=action_type,
                    performer_id=int(performer_id),
                    created_at=created_at,
                    to_user_id=to_user_id,
                    note=note,
                )
            )
            return entry_id

    def _for(self, entity_type, work_item_id):
        with self._lock:
            return [e for e in self.entries if e.entity_type == entity_type and e.work_item_id == int(work_item_id)]

    def latest_created_at(self, *, entity_type, work_item_id):
        found = self._for(entity_type, work_item_id)
        return max(e.created_at for e in found) if found else None

    def list_for(self, *, entity_type, work_item_id):
        return sorted(self._for(entity_type, work_item_id), key=lambda e: (e.created_at, e.entry_id))


class FakeLedgerRepo:
    def __init__(self, students=None, classes=None):
        self._lock = threading.RLock()
        self.entries: list[LedgerEntry] = []
        # student_id -> (name, class_id)
        self.students: dict[int, tuple[str, int]] = dict(students or {})
        self.classes: dict[int, str] = dict(classes or {})
        self.fail_on_insert = False

    def snapshot(self):
        with self._lock:
            return list(self.entries)

    def restore(self, state) -> None:
        with self._lock:
            self.entries = list(state)

    def insert(self, *, achievement_id, student_id, points, created_at):
        if self.fail_on_insert:
            raise RuntimeError("ledger unavailable")
        with self._lock:
            entry_id = len(self.entries) + 1
            self.entries.append(
                LedgerEntry(
                    entry_id=entry_id,
                    achievement_id=int(achievement_id),
                    student_id=int(student_id),
                    points=int(points),
                    created_at=created_at,
                )
            )
            return entry_id

    def _window(self, since, until):
        with self._lock:
            entries = list(self.entries)
        return [
            e
            for e in entries
            if (since is None or e.created_at >= since) and (until is None or e.created_at < until)
        ]

    def sum_points(self, *, student_id, since=None, until=None):
        return sum(e.points for e in self._window(since, until) if e.student_id == int(student_id))

    def list_for_student(self, *, student_id, limit=200):
        with self._lock:
            mine = [e for e in self.entries if e.student_id == int(student_id)]
        mine.sort(key=lambda e: (e.created_at, e.entry_id), reverse=True)
        return mine[: int(limit)]

    def points_by_student(self, *, since=None, until=None):
        window = self._window(since, until)
        return [
            StudentPointsRow(
                student_id=sid,
                name=name,
                class_id=class_id,
                class_name=self.classes.get(class_id),
                points=sum(e.points for e in window if e.student_id == sid),
            )
            for sid, (name, class_id) in self.students.items()
        ]

    def points_by_class(self, *, since=None, until=None):
        window = self._window(since, until)
        rows = []
        for class_id, class_name in self.classes.items():
            members = {sid for sid, (_, cid) in self.students.items() if cid == class_id}
            rows.append(
                ClassPointsRow(
                    class_id=class_id,
                    class_name=class_name,
                    student_count=len(members),
                    points=sum(e.points for e in window if e.student_id in members),
                )
            )
        return rows


class FakeAttendanceRepo:
    def __init__(self):
        self._lock = threading.RLock()
        self.facts: dict[tuple[int, date, object], AttendanceFact] = {}

    def upsert_facts(self, facts):
        with self._lock:
            for f in facts:
                self.facts[(f.student_id, f.date, f.session)] = f
        return len(facts)

    def _all(self):
        with self._lock:
            return list(self.facts.values())

    def facts_for_class(self, *, class_id, on, session=None):
        return [
            f
            for f in self._all()
            if f.class_id == int(class_id) and f.date == on and (session is None or f.session == session)
        ]

    def facts_for_date(self, *, on):
        return [f for f in self._all() if f.date == on]

    def facts_for_student(self, *, student_id, start=None, end=None):
        return sorted(
            (
                f
                for f in self._all()
                if f.student_id == int(student_id)
                and (start is None or f.date >= start)
                and (end is None or f.date <= end)
            ),
            key=lambda f: (f.date, f.session.value),
        )


class FakeRosterRepo:
    def __init__(self, rosters):
        self.rosters: dict[int, list[int]] = {int(k): list(v) for k, v in rosters.items()}

    def class_exists(self, class_id):
        return int(class_id) in self.rosters

    def student_ids_for_class(self, class_id):
        return list(self.rosters.get(int(class_id), []))


class FakeIdentityRepo:
    def __init__(self, tokens):
        self.tokens: dict[str, Actor] = dict(tokens)

    def resolve_token(self, token):
        return self.tokens.get(token)


class FakeTransactionManager:
    """Serialises units of work and rolls every participant back on error."""

    def __init__(self, *participants):
        self._lock = threading.RLock()
        self._local = threading.local()
        self._participants = participants
        self.commits = 0
        self.rollbacks = 0

    @contextmanager
    def atomic(self):
        with self._lock:
            depth = getattr(self._local, "depth", 0)
            if depth:
                self._local.depth = depth + 1
                try:
                    yield
                finally:
                    self._local.depth = depth
                return

            snapshots = [p.snapshot() for p in self._participants]
            self._local.depth = 1
            try:
                yield
            except BaseException:
                for p, state in zip(self._participants, snapshots):
                    p.restore(state)
                self.rollbacks += 1
                raise
            else:
                self.commits += 1
            finally:
                self._local.depth = 0


class CollectingDispatcher:
    def __init__(self):
        self.events = []
        self.fail = False

    def dispatch(self, event):
        if self.fail:
            raise RuntimeError("notification channel down")
        self.events.append(event)


STUDENTS = {10: ("Student An", 1), 11: ("Student Binh", 1), 12: ("Student Chi", 2)}
CLASSES = {1: "10A1", 2: "10A2"}
ROSTERS = {1: [10, 11], 2: [12], 3: []}


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 15, 9, 0, 0)


@pytest.fixture
def clock(fixed_now):
    return FakeClock(fixed_now)


@pytest.fixture
def items_repo():
    return FakeWorkItemRepo()


@pytest.fixture
def timeline_repo():
    return FakeTimelineRepo()


@pytest.fixture
def ledger_repo():
    return FakeLedgerRepo(students=STUDENTS, classes=CLASSES)


@pytest.fixture
def attendance_repo():
    return FakeAttendanceRepo()


@pytest.fixture
def roster_repo():
    return FakeRosterRepo(ROSTERS)


@pytest.fixture
def tx(items_repo, timeline_repo, ledger_repo):
    return FakeTransactionManager(items_repo, timeline_repo, ledger_repo)


@pytest.fixture
def dispatcher():
    return CollectingDispatcher()


@pytest.fixture
def principal():
    return Actor.for_role(1, Role.PRINCIPAL, name="Principal Nguyen")


@pytest.fixture
def manager():
    return Actor.for_role(2, Role.MANAGER, name="Manager Tran")


@pytest.fixture
def teacher():
    return Actor.for_role(3, Role.TEACHER, name="Teacher Le")


@pytest.fixture
def reviewer_teacher():
    return Actor.for_role(4, Role.TEACHER, can_review_achievements=True, name="Teacher Pham")


@pytest.fixture
def student():
    return Actor.for_role(10, Role.STUDENT, name="Student An")


@pytest.fixture
def other_student():
    return Actor.for_role(11, Role.STUDENT, name="Student Binh")


@pytest.fixture
def identity_repo(principal, manager, teacher, reviewer_teacher, student, other_student):
    return FakeIdentityRepo(
        {
            "principal-token": principal,
            "manager-token": manager,
            "teacher-token": teacher,
            "reviewer-token": reviewer_teacher,
            "student-a-token": student,
            "student-b-token": other_student,
        }
    )


@pytest.fixture
def container(identity_repo, items_repo, timeline_repo, ledger_repo, attendance_repo, roster_repo, tx, dispatcher, clock):
    return assemble_container(
        identity=identity_repo,
        items_repo=items_repo,
        timeline_repo=timeline_repo,
        ledger_repo=ledger_repo,
        attendance_repo=attendance_repo,
        roster_repo=roster_repo,
        tx=tx,
        dispatcher=dispatcher,
        clock=clock,
    )
