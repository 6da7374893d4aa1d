from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .attendance.aggregator import AttendanceAggregator
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository, MySQLRosterRepository
from .attendance.repository import AttendanceRepository, RosterRepository
from .attendance.service import AttendanceService
from .common.datetime_utils import now_local
from .core.constants import POINTS_PER_STAR
from .database.connection import DBConfig, DatabaseConnection
from .database.transaction import MySQLTransactionManager, TransactionManager
from .events.dispatcher import LoggingDispatcher, NotificationDispatcher
from .identity.mysql_identity_repository import MySQLIdentityRepository
from .identity.repository import IdentityRepository
from .ledger.mysql_ledger_repository import MySQLLedgerRepository
from .ledger.repository import LedgerRepository
from .ledger.service import AccountingLedger
from .timeline.mysql_timeline_repository import MySQLTimelineRepository
from .timeline.recorder import TimelineRecorder
from .timeline.repository import TimelineRepository
from .workflow.engine import WorkflowEngine
from .workflow.mysql_work_item_repository import MySQLWorkItemRepository
from .workflow.repository import WorkItemRepository
from .workflow.service import WorkItemService


@dataclass(frozen=True)
class Container:
    identity: IdentityRepository
    items_repo: WorkItemRepository
    attendance_repo: AttendanceRepository
    roster_repo: RosterRepository
    tx: TransactionManager

    timeline: TimelineRecorder
    ledger: AccountingLedger
    workflow_engine: WorkflowEngine
    work_item_service: WorkItemService
    attendance_aggregator: AttendanceAggregator
    attendance_service: AttendanceService

    clock: Callable[[], datetime]


def assemble_container(
    *,
    identity: IdentityRepository,
    items_repo: WorkItemRepository,
    timeline_repo: TimelineRepository,
    ledger_repo: LedgerRepository,
    attendance_repo: AttendanceRepository,
    roster_repo: RosterRepository,
    tx: TransactionManager,
    dispatcher: Optional[NotificationDispatcher] = None,
    points_per_star: int = POINTS_PER_STAR,
    clock: Callable[[], datetime] = now_local,
) -> Container:
    timeline = TimelineRecorder(timeline_repo, clock=clock)
    ledger = AccountingLedger(ledger_repo, points_per_star=points_per_star, clock=clock)
    workflow_engine = WorkflowEngine(
        items_repo,
        timeline,
        ledger,
        tx,
        dispatcher=dispatcher,
        clock=clock,
    )
    work_item_service = WorkItemService(items_repo, timeline, tx, clock=clock)
    attendance_aggregator = AttendanceAggregator(attendance_repo)
    attendance_service = AttendanceService(attendance_repo, roster_repo, attendance_aggregator, clock=clock)

    return Container(
        identity=identity,
        items_repo=items_repo,
        attendance_repo=attendance_repo,
        roster_repo=roster_repo,
        tx=tx,
        timeline=timeline,
        ledger=ledger,
        workflow_engine=workflow_engine,
        work_item_service=work_item_service,
        attendance_aggregator=attendance_aggregator,
        attendance_service=attendance_service,
        clock=clock,
    )


def build_container(*, db_config: dict, points_per_star: int = POINTS_PER_STAR) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    return assemble_container(
        identity=MySQLIdentityRepository(conn),
        items_repo=MySQLWorkItemRepository(conn),
        timeline_repo=MySQLTimelineRepository(conn),
        ledger_repo=MySQLLedgerRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        roster_repo=MySQLRosterRepository(conn),
        tx=MySQLTransactionManager(conn),
        dispatcher=LoggingDispatcher(),
        points_per_star=points_per_star,
    )
