from schooldesk.core.database import Base
from schooldesk.models.auth import School, User, UserRole, UserSession, AuditLog
from schooldesk.models.profiles import StudentProfile, TeacherProfile, TeacherDepartment
from schooldesk.models.academics import (
    Subject,
    SubjectCategory,
    TeacherSubject,
    Timetable,
    TimetableStatus,
)
from schooldesk.models.assessments import (
    Assignment,
    AssignmentStatus,
    AssignmentSubmission,
    AssignmentType,
    Grade,
    SubmissionStatus,
)
from schooldesk.models.records import (
    AlertPriority,
    AlertStatus,
    AlertType,
    Announcement,
    Attendance,
    AttendanceStatus,
    CalendarEvent,
    Notification,
    StudentAlert,
)
