from __future__ import annotations

from dataclasses import dataclass

from .attendance.factory import AttendanceStrategyFactory
from .attendance.location import LocationVerifier
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository, MySQLAttendanceSettingsRepository
from .attendance.service import AttendanceService
from .chat.mysql_chat_repository import MySQLChatRepository
from .chat.service import ChatService
from .core.constants import DEFAULT_AUTO_APPROVE_CUTOFF_HOURS
from .database.connection import DBConfig, DatabaseConnection
from .fulfillment.mysql_fulfillment_repository import MySQLHandoverRepository, MySQLPackingRepository
from .fulfillment.parser import PackingSheetParser
from .fulfillment.service import CourierHandoverService, PackingService
from .inventory.mysql_inventory_repository import MySQLInventoryRepository
from .inventory.service import InventoryService
from .marketing.mysql_marketing_repository import MySQLCreatorPaymentRepository, MySQLCreatorRepository
from .marketing.service import MarketingService
from .payroll.calculator.standard_calculator import StandardPayrollCalculator
from .payroll.mysql_payroll_repository import MySQLPayrollRepository
from .payroll.service import PayrollReportService, PayrollService
from .support.mysql_support_repository import MySQLFeedbackRepository, MySQLTicketRepository
from .support.service import FeedbackService, SupportService
from .tasks.mysql_task_repository import (
    MySQLRecurrenceRunRepository,
    MySQLTaskCommentRepository,
    MySQLTaskRepository,
    MySQLTaskSettingsRepository,
    MySQLTaskTemplateRepository,
)
from .tasks.recurrence import RecurrenceRule
from .tasks.service import RecurrenceService, TaskCommentService, TaskService
from .users.mysql_user_repository import MySQLDepartmentRepository, MySQLUserRepository
from .users.service import AuthService, UserService


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    departments_repo: MySQLDepartmentRepository

    auth_service: AuthService
    user_service: UserService
    attendance_service: AttendanceService
    payroll_service: PayrollService
    payroll_report_service: PayrollReportService
    task_service: TaskService
    task_comment_service: TaskCommentService
    recurrence_service: RecurrenceService
    inventory_service: InventoryService
    packing_service: PackingService
    handover_service: CourierHandoverService
    support_service: SupportService
    feedback_service: FeedbackService
    chat_service: ChatService
    marketing_service: MarketingService


def build_container(
    *,
    db_config: dict,
    auto_approve_daily: bool = True,
    auto_approve_cutoff_hours: int = DEFAULT_AUTO_APPROVE_CUTOFF_HOURS,
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    users_repo = MySQLUserRepository(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    task_repo = MySQLTaskRepository(conn)
    template_repo = MySQLTaskTemplateRepository(conn)
    calculator = StandardPayrollCalculator()

    return Container(
        conn=conn,
        departments_repo=MySQLDepartmentRepository(conn),
        auth_service=AuthService(users_repo),
        user_service=UserService(users_repo),
        attendance_service=AttendanceService(
            attendance_repo,
            users_repo,
            MySQLAttendanceSettingsRepository(conn),
            strategy_factory=AttendanceStrategyFactory(),
            verifier=LocationVerifier(),
        ),
        payroll_service=PayrollService(
            MySQLPayrollRepository(conn), users_repo, attendance_repo, calculator=calculator
        ),
        payroll_report_service=PayrollReportService(attendance_repo, calculator=calculator),
        task_service=TaskService(
            task_repo,
            template_repo,
            users_repo,
            settings=MySQLTaskSettingsRepository(conn),
            auto_approve_daily=auto_approve_daily,
            auto_approve_cutoff_hours=auto_approve_cutoff_hours,
        ),
        task_comment_service=TaskCommentService(MySQLTaskCommentRepository(conn), task_repo),
        recurrence_service=RecurrenceService(
            template_repo, task_repo, MySQLRecurrenceRunRepository(conn), rule=RecurrenceRule()
        ),
        inventory_service=InventoryService(MySQLInventoryRepository(conn)),
        packing_service=PackingService(MySQLPackingRepository(conn), parser=PackingSheetParser()),
        handover_service=CourierHandoverService(MySQLHandoverRepository(conn)),
        support_service=SupportService(MySQLTicketRepository(conn)),
        feedback_service=FeedbackService(MySQLFeedbackRepository(conn)),
        chat_service=ChatService(MySQLChatRepository(conn)),
        marketing_service=MarketingService(MySQLCreatorRepository(conn), MySQLCreatorPaymentRepository(conn)),
    )
