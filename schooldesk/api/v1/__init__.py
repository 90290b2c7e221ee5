from schooldesk.api.v1.auth import router as auth_router
from schooldesk.api.v1.admin import router as admin_router
from schooldesk.api.v1.director import router as director_router
from schooldesk.api.v1.coordinator import router as coordinator_router
from schooldesk.api.v1.class_teacher import router as class_teacher_router
from schooldesk.api.v1.subject_teacher import router as subject_teacher_router
from schooldesk.api.v1.students import router as students_router

__all__ = [
    "auth_router",
    "admin_router",
    "director_router",
    "coordinator_router",
    "class_teacher_router",
    "subject_teacher_router",
    "students_router",
]
