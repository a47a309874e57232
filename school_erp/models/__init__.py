# Database models

from school_erp.models.school import School, SchoolStatus
from school_erp.models.user import User, UserStatus
from school_erp.models.academic import AcademicSession, SchoolClass, Section, Subject
from school_erp.models.student import Gender, Parent, ProfileStatus, Student, StudentStatus, Teacher
from school_erp.models.attendance import (
    AttendanceStatus,
    StudentDailyAttendance,
    StudentSubjectAttendance,
    TeacherAttendance,
)
from school_erp.models.fee import (
    FeeFrequency,
    FeePayment,
    FeeStatus,
    FeeStructure,
    OnlinePayment,
    OnlinePaymentStatus,
    PaymentMode,
    StudentFee,
)
from school_erp.models.exam import (
    AdmitCard,
    Exam,
    ExamForm,
    ExamPayment,
    ExamStatus,
    ExamSubject,
    Result,
    ResultStatus,
)
from school_erp.models.record import AcademicHistory, HistoryStatus, TransferCertificate
from school_erp.models.salary import SalaryCalculation, SalaryPayment, SalaryProfile, SalaryStatus
from school_erp.models.hostel import Hostel, HostelLeave, LeaveStatus, Room, StudentHostel
from school_erp.models.transport import StudentTransport, TransportRoute, Vehicle
from school_erp.models.expense import Expense, ExpenseCategory, Homework, InventoryItem
from school_erp.models.audit import AuditAction, AuditLog, EntityType
from school_erp.models.backup import ArchivedRecord, Backup, BackupStatus, BackupType
from school_erp.models.system import SystemAnnouncement, SystemSettings

__all__ = [
    "School",
    "SchoolStatus",
    "User",
    "UserStatus",
    "AcademicSession",
    "SchoolClass",
    "Section",
    "Subject",
    "Gender",
    "Parent",
    "ProfileStatus",
    "Student",
    "StudentStatus",
    "Teacher",
    "AttendanceStatus",
    "StudentDailyAttendance",
    "StudentSubjectAttendance",
    "TeacherAttendance",
    "FeeFrequency",
    "FeePayment",
    "FeeStatus",
    "FeeStructure",
    "OnlinePayment",
    "OnlinePaymentStatus",
    "PaymentMode",
    "StudentFee",
    "AdmitCard",
    "Exam",
    "ExamForm",
    "ExamPayment",
    "ExamStatus",
    "ExamSubject",
    "Result",
    "ResultStatus",
    "AcademicHistory",
    "HistoryStatus",
    "TransferCertificate",
    "SalaryCalculation",
    "SalaryPayment",
    "SalaryProfile",
    "SalaryStatus",
    "Hostel",
    "HostelLeave",
    "LeaveStatus",
    "Room",
    "StudentHostel",
    "StudentTransport",
    "TransportRoute",
    "Vehicle",
    "Expense",
    "ExpenseCategory",
    "Homework",
    "InventoryItem",
    "AuditAction",
    "AuditLog",
    "EntityType",
    "ArchivedRecord",
    "Backup",
    "BackupStatus",
    "BackupType",
    "SystemAnnouncement",
    "SystemSettings",
]
