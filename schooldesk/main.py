from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schooldesk import __version__
from schooldesk.core.config import settings
from schooldesk.core.errors import register_exception_handlers
from schooldesk.core.logging import setup_logging
from schooldesk.api.v1 import (
    auth_router,
    admin_router,
    director_router,
    coordinator_router,
    class_teacher_router,
    subject_teacher_router,
    students_router,
)

setup_logging(settings)

PROTECTED = f"{settings.API_PREFIX}/protected"

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=__version__,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)

register_exception_handlers(app)

# Include Routers
app.include_router(auth_router, prefix=f"{settings.API_PREFIX}/auth", tags=["Auth"])
app.include_router(admin_router, prefix=f"{PROTECTED}/admin", tags=["Admin"])
app.include_router(director_router, prefix=f"{PROTECTED}/teachers/director", tags=["Director"])
app.include_router(coordinator_router, prefix=f"{PROTECTED}/teachers/coordinator", tags=["Coordinator"])
app.include_router(class_teacher_router, prefix=f"{PROTECTED}/teachers/class", tags=["Class Teacher"])
app.include_router(subject_teacher_router, prefix=f"{PROTECTED}/teachers/subject", tags=["Subject Teacher"])
app.include_router(students_router, prefix=f"{PROTECTED}/students", tags=["Students"])


@app.get("/")
def root():
    return {"message": "SchoolDesk API", "version": __version__}


@app.get("/health")
def health():
    return {"status": "ok"}
