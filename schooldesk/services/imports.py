"""Bulk user import.

Both importers walk their rows one at a time. Every row runs inside its own
savepoint so a failing row is rolled back alone and reported, while the rows
around it are kept.
"""
import io
from typing import Any, Dict, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from schooldesk.core import security
from schooldesk.core.logging import get_logger
from schooldesk.models.auth import User, UserRole
from schooldesk.models.profiles import TeacherDepartment
from schooldesk.schemas.users import ImportOptions
from schooldesk.services import accounts

logger = get_logger(__name__)

STUDENT_REQUIRED = ("first_name", "last_name", "email")
CSV_REQUIRED_HEADERS = ("first_name", "last_name", "email", "username", "password")

STUDENT_CSV_FORMAT = [
    "first_name", "last_name", "email", "phone", "date_of_birth", "gender", "address",
    "class_name", "section", "parent_name", "parent_phone", "parent_email",
]
STUDENT_CSV_SAMPLE = [
    "John", "Doe", "john.doe@example.com", "+2341234567890", "2005-06-15", "male",
    "123 Main St, Lagos", "SS1A", "A", "Jane Doe", "+2340987654321", "jane.doe@example.com",
]


class ImportFormatError(ValueError):
    """The uploaded file cannot be imported at all."""


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _split_list(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in str(value).split(";") if part.strip()]


def import_students(db: Session, director: User, rows: List[Dict[str, Any]], options: ImportOptions) -> Dict[str, Any]:
    results = {"successful": [], "failed": [], "duplicates": [], "warnings": []}
    school = director.school
    index = accounts.next_student_index(db, director.school_id)

    for i, raw in enumerate(rows):
        row_no = i + 1
        data = {k: _clean(v) for k, v in (raw or {}).items()}
        try:
            missing = [f for f in STUDENT_REQUIRED if not data.get(f)]
            if missing:
                results["failed"].append({
                    "row": row_no,
                    "data": raw,
                    "error": f"Missing required fields: {', '.join(missing)}",
                })
                continue

            existing = accounts.find_user_by_email(db, director.school_id, data["email"])
            if existing is not None:
                results["duplicates"].append({
                    "row": row_no,
                    "data": raw,
                    "existing_user": {
                        "id": str(existing.id),
                        "name": existing.full_name,
                        "role": getattr(existing.role, "value", existing.role),
                    },
                })
                if options.skip_duplicates:
                    continue
                if not options.update_duplicates:
                    results["failed"].append({"row": row_no, "data": raw, "error": "Email already exists in school"})
                    continue
                if existing.role != UserRole.student:
                    results["failed"].append({"row": row_no, "data": raw, "error": "Email belongs to a non-student account"})
                    continue

            if not data.get("class_name"):
                results["warnings"].append({"row": row_no, "message": "No class name given; student is unassigned"})

            password = options.default_password or security.generate_password()
            student_id = data.get("student_id") or accounts.generate_student_id(school, data.get("class_name"), index + i)

            with db.begin_nested():
                if existing is not None:
                    user = existing
                    for field in accounts.USER_FIELDS:
                        if data.get(field) is not None:
                            value = data[field]
                            if field == "date_of_birth":
                                value = accounts.parse_date(value)
                            setattr(user, field, value)
                else:
                    user = accounts.create_user(db, director.school_id, data, UserRole.student, password)
                accounts.upsert_student_profile(db, user, data, student_id)

            results["successful"].append({
                "row": row_no,
                "updated": existing is not None,
                "user": {
                    "id": str(user.id),
                    "name": user.full_name,
                    "email": user.email,
                    "student_id": student_id,
                    "default_password": password if options.include_passwords and existing is None else "[hidden]",
                },
            })
        except Exception as e:
            logger.warning("student_import_row_failed", row=row_no, error=str(e))
            results["failed"].append({"row": row_no, "data": raw, "error": str(e)})

    db.commit()

    summary = {
        "total_processed": len(rows),
        "successful": len(results["successful"]),
        "failed": len(results["failed"]),
        "duplicates": len(results["duplicates"]),
        "warnings": len(results["warnings"]),
    }
    payload = {"summary": summary, "results": results}
    if options.include_passwords:
        payload["password_list"] = [
            {"name": s["user"]["name"], "email": s["user"]["email"], "password": s["user"]["default_password"]}
            for s in results["successful"]
        ]
    logger.info(
        "student_import_finished",
        school_id=str(director.school_id),
        successful=summary["successful"],
        failed=summary["failed"],
        duplicates=summary["duplicates"],
    )
    return payload


def read_csv_rows(content: bytes) -> List[Dict[str, Any]]:
    try:
        df = pd.read_csv(io.BytesIO(content), dtype=str, keep_default_na=False, skipinitialspace=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError):
        raise ImportFormatError("CSV file is empty or invalid")

    df.columns = [str(c).strip() for c in df.columns]
    missing = [h for h in CSV_REQUIRED_HEADERS if h not in df.columns]
    if missing:
        raise ImportFormatError(f"Missing required headers: {', '.join(missing)}")
    if df.empty:
        raise ImportFormatError("CSV file is empty or invalid")

    df = df.apply(lambda col: col.str.strip())
    df = df.where(df != "", None)
    return df.to_dict(orient="records")


def import_users_csv(db: Session, admin: User, content: bytes, role: UserRole) -> Dict[str, Any]:
    rows = read_csv_rows(content)
    results = {"success": 0, "failed": 0, "errors": []}
    index = accounts.next_student_index(db, admin.school_id)

    # Header is line 1, so data rows start at 2.
    for offset, data in enumerate(rows):
        line = offset + 2
        try:
            if not all(data.get(f) for f in ("first_name", "last_name", "email", "password")):
                results["failed"] += 1
                results["errors"].append(f"Row {line}: Missing required fields")
                continue
            if accounts.find_user_by_email(db, admin.school_id, data["email"]) is not None:
                results["failed"] += 1
                results["errors"].append(f"Row {line}: Email {data['email']} already exists")
                continue

            with db.begin_nested():
                user = accounts.create_user(db, admin.school_id, data, role, data["password"])
                if role == UserRole.student:
                    student_id = accounts.generate_student_id(admin.school, data.get("class_name"), index)
                    accounts.upsert_student_profile(db, user, data, student_id)
                    index += 1
                elif role == UserRole.teacher:
                    department = TeacherDepartment(data["teacher_type"]) if data.get("teacher_type") else None
                    accounts.create_teacher_profile(
                        db,
                        user,
                        department,
                        assigned_class=data.get("assigned_class"),
                        stage=data.get("stage"),
                        coordinator_classes=_split_list(data.get("coordinator_classes")),
                        class_teacher_arms=_split_list(data.get("class_teacher_arms")),
                        qualification=data.get("qualification"),
                        experience_years=int(data["experience_years"]) if data.get("experience_years") else 0,
                    )
            results["success"] += 1
        except Exception as e:
            logger.warning("csv_import_row_failed", row=line, error=str(e))
            results["failed"] += 1
            results["errors"].append(f"Row {line}: {e}")

    db.commit()
    logger.info("csv_import_finished", role=role.value, school_id=str(admin.school_id), success=results["success"], failed=results["failed"])
    return results
