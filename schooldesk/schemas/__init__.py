from schooldesk.schemas.auth import SchoolLogin, ChangePassword, TokenPayload
from schooldesk.schemas.users import (
    UserCreate,
    UserUpdate,
    UserResponse,
    StudentCreate,
    StudentUpdate,
    StudentSelfUpdate,
    StudentImportRequest,
    ImportOptions,
    TeacherUpdate,
)
from schooldesk.schemas.academics import (
    SubjectCreate,
    SubjectUpdate,
    SubjectResponse,
    TeacherSubjectAssignment,
    TimetableGenerateRequest,
    TimetableApproveRequest,
)
from schooldesk.schemas.assessments import (
    AssignmentCreate,
    AssignmentUpdate,
    OnlineTestCreate,
    GradeSubmissionRequest,
    BulkGradeRequest,
    TheoryGradeRequest,
    TestSubmitRequest,
    HomeworkSubmitRequest,
)
from schooldesk.schemas.records import (
    AttendanceMark,
    AttendanceUpdate,
    AlertCreate,
    AlertUpdate,
    CalendarEventCreate,
    CalendarEventUpdate,
    AnnouncementCreate,
)
