import random
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from schooldesk.core.logging import get_logger
from schooldesk.models.auth import User
from schooldesk.models.academics import Subject, SubjectCategory, TeacherSubject, Timetable, TimetableStatus
from schooldesk.models.profiles import TeacherProfile
from schooldesk.services.accounts import is_management_subject
from schooldesk.services.scope import normalize_class_list, normalize_class_name, subject_applies_to

logger = get_logger(__name__)

WORKING_DAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

DEFAULT_PERIODS: List[Tuple[str, str]] = [
    ("08:00", "09:05"),
    ("09:05", "10:10"),
    ("10:10", "11:20"),
    ("11:35", "12:40"),
    ("12:40", "13:45"),
    ("13:45", "14:15"),
    ("14:30", "15:35"),
    ("15:35", "16:00"),
]

# category -> (priority, min periods, max periods)
SUBJECT_PRIORITIES = {
    SubjectCategory.CORE: (1, 2, 4),
    SubjectCategory.SCIENCE: (2, 2, 3),
    SubjectCategory.ARTS: (3, 2, 3),
    SubjectCategory.COMMERCIAL: (3, 2, 3),
    SubjectCategory.VOCATIONAL: (4, 1, 2),
}

MAX_TEACHER_WEEK_LOAD = 25
MAX_SUBJECT_PERIODS_PER_DAY = 2
MAX_SEARCH_STEPS = 50000


class TimetableError(ValueError):
    """Generation was refused; the message is safe to show to the caller."""


class TimetableEngine:
    def __init__(self, db: Session, school_id: UUID, seed: Optional[int] = None):
        self.db = db
        self.school_id = school_id
        self.days = list(WORKING_DAYS)
        self.periods = list(DEFAULT_PERIODS)
        self.rng = random.Random(seed)

    def generate(self, class_name: str, created_by: User, overwrite: bool = False) -> Dict[str, Any]:
        """Build and save a pending timetable for one class."""
        class_name = normalize_class_name(class_name)
        existing = self.db.query(Timetable).filter(
            Timetable.school_id == self.school_id,
            Timetable.class_name == class_name,
        )
        if existing.first() is not None:
            if not overwrite:
                raise TimetableError("Timetable already exists for this class")
            existing.delete(synchronize_session=False)
            self.db.flush()

        subjects = self._class_subjects(class_name)
        if not subjects:
            raise TimetableError("No subjects found for this class")

        requirements = self._requirements(class_name, subjects)
        total_slots = len(self.days) * len(self.periods)
        required = sum(r["min"] for r in requirements)
        if required > total_slots:
            raise TimetableError(
                f"Not enough time slots: need {required} periods but only {total_slots} are available"
            )

        self._load_busy_slots(class_name)
        grid: Dict[str, List[Optional[Dict[str, Any]]]] = {
            day: [None] * len(self.periods) for day in self.days
        }

        # Most constrained first: staffed subjects with high priority.
        requirements.sort(key=lambda r: (r["teacher_id"] is None, r["priority"], -r["min"]))
        pool = [req for req in requirements for _ in range(req["min"])]

        self.steps = 0
        if not self._backtrack(grid, pool, 0):
            raise TimetableError("Could not place every subject without a teacher clash")
        self._fill_extra_periods(grid, requirements)

        entries = self._save(grid, class_name, created_by)
        logger.info("timetable_generated", class_name=class_name, slots=len(entries), school_id=str(self.school_id))
        return self._summary(class_name, entries, requirements, total_slots)

    def _class_subjects(self, class_name: str) -> List[Subject]:
        subjects = (
            self.db.query(Subject)
            .filter(Subject.school_id == self.school_id, Subject.is_active == True)
            .order_by(Subject.name)
            .all()
        )
        return [s for s in subjects if not is_management_subject(s) and subject_applies_to(s, class_name)]

    def _candidates(self, subject: Subject, class_name: str) -> List[UUID]:
        rows = (
            self.db.query(TeacherSubject)
            .options(joinedload(TeacherSubject.teacher).joinedload(TeacherProfile.user))
            .filter(TeacherSubject.subject_id == subject.id)
            .all()
        )
        teachers = []
        for row in rows:
            user = row.teacher.user if row.teacher else None
            if user is None or not user.is_active or user.school_id != self.school_id:
                continue
            classes = normalize_class_list(row.classes)
            if classes and class_name not in classes:
                continue
            if user.id not in teachers:
                teachers.append(user.id)
        return teachers

    def _requirements(self, class_name: str, subjects: List[Subject]) -> List[Dict[str, Any]]:
        self.teacher_week_load: Dict[UUID, int] = self._existing_loads(class_name)
        requirements = []
        for subject in subjects:
            priority, minimum, maximum = SUBJECT_PRIORITIES.get(
                subject.category, SUBJECT_PRIORITIES[SubjectCategory.VOCATIONAL]
            )
            candidates = self._candidates(subject, class_name)
            teacher_id = min(candidates, key=lambda t: self.teacher_week_load.get(t, 0)) if candidates else None
            if teacher_id is None:
                logger.warning("subject_without_teacher", subject=subject.name, class_name=class_name)
            requirements.append({
                "subject_id": subject.id,
                "subject_name": subject.name,
                "category": getattr(subject.category, "value", subject.category),
                "teacher_id": teacher_id,
                "priority": priority,
                "min": minimum,
                "max": maximum,
            })
        return requirements

    def _existing_loads(self, class_name: str) -> Dict[UUID, int]:
        loads: Dict[UUID, int] = defaultdict(int)
        rows = self.db.query(Timetable.teacher_id).filter(
            Timetable.school_id == self.school_id,
            Timetable.class_name != class_name,
            Timetable.teacher_id != None,
        ).all()
        for (teacher_id,) in rows:
            loads[teacher_id] += 1
        return loads

    def _load_busy_slots(self, class_name: str) -> None:
        """Slots already taken by each teacher in other classes of the school."""
        self.teacher_busy = {day: [set() for _ in self.periods] for day in self.days}
        rows = self.db.query(Timetable).filter(
            Timetable.school_id == self.school_id,
            Timetable.class_name != class_name,
            Timetable.teacher_id != None,
        ).all()
        for row in rows:
            p_idx = row.period - 1
            if row.day_of_week in self.teacher_busy and 0 <= p_idx < len(self.periods):
                self.teacher_busy[row.day_of_week][p_idx].add(row.teacher_id)

    def _backtrack(self, grid, pool, pool_index) -> bool:
        if pool_index >= len(pool):
            return True
        self.steps += 1
        if self.steps > MAX_SEARCH_STEPS:
            return False

        item = pool[pool_index]
        days = list(self.days)
        self.rng.shuffle(days)

        for day in days:
            for p_idx in range(len(self.periods)):
                if grid[day][p_idx] is not None:
                    continue
                if not self._is_valid(item, day, p_idx, grid):
                    continue
                self._assign(grid, day, p_idx, item)
                if self._backtrack(grid, pool, pool_index + 1):
                    return True
                self._unassign(grid, day, p_idx, item)
        return False

    def _is_valid(self, item, day, p_idx, grid) -> bool:
        same_day = sum(1 for slot in grid[day] if slot and slot["subject_id"] == item["subject_id"])
        if same_day >= MAX_SUBJECT_PERIODS_PER_DAY:
            return False

        teacher_id = item["teacher_id"]
        if teacher_id is None:
            return True
        if teacher_id in self.teacher_busy[day][p_idx]:
            return False
        if self.teacher_week_load.get(teacher_id, 0) >= MAX_TEACHER_WEEK_LOAD:
            return False
        return True

    def _assign(self, grid, day, p_idx, item):
        grid[day][p_idx] = item
        teacher_id = item["teacher_id"]
        if teacher_id is not None:
            self.teacher_busy[day][p_idx].add(teacher_id)
            self.teacher_week_load[teacher_id] = self.teacher_week_load.get(teacher_id, 0) + 1

    def _unassign(self, grid, day, p_idx, item):
        grid[day][p_idx] = None
        teacher_id = item["teacher_id"]
        if teacher_id is not None:
            self.teacher_busy[day][p_idx].discard(teacher_id)
            self.teacher_week_load[teacher_id] = max(0, self.teacher_week_load.get(teacher_id, 0) - 1)

    def _fill_extra_periods(self, grid, requirements) -> None:
        """Second pass: top CORE subjects up to their maximum in the free slots."""
        counts = defaultdict(int)
        for day in self.days:
            for slot in grid[day]:
                if slot:
                    counts[slot["subject_id"]] += 1
        core = [r for r in requirements if r["category"] == SubjectCategory.CORE.value]
        for day in self.days:
            for p_idx in range(len(self.periods)):
                if grid[day][p_idx] is not None:
                    continue
                for req in core:
                    if counts[req["subject_id"]] >= req["max"]:
                        continue
                    if self._is_valid(req, day, p_idx, grid):
                        self._assign(grid, day, p_idx, req)
                        counts[req["subject_id"]] += 1
                        break

    def _save(self, grid, class_name: str, created_by: User) -> List[Timetable]:
        entries = []
        for day in self.days:
            for p_idx, slot in enumerate(grid[day]):
                if slot is None:
                    continue
                start, end = self.periods[p_idx]
                entry = Timetable(
                    school_id=self.school_id,
                    class_name=class_name,
                    subject_id=slot["subject_id"],
                    teacher_id=slot["teacher_id"],
                    day_of_week=day,
                    period=p_idx + 1,
                    start_time=start,
                    end_time=end,
                    status=TimetableStatus.pending,
                    created_by_id=created_by.id,
                )
                self.db.add(entry)
                entries.append(entry)
        self.db.flush()
        return entries

    def _summary(self, class_name, entries, requirements, total_slots) -> Dict[str, Any]:
        by_category = defaultdict(int)
        category_of = {r["subject_id"]: r["category"] for r in requirements}
        for entry in entries:
            by_category[category_of[entry.subject_id]] += 1
        teachers = {e.teacher_id for e in entries if e.teacher_id is not None}
        overloaded = [str(t) for t in teachers if self.teacher_week_load.get(t, 0) > MAX_TEACHER_WEEK_LOAD - 5]
        return {
            "class_name": class_name,
            "total_periods": len(entries),
            "subjects_included": len(requirements),
            "teachers_involved": len(teachers),
            "utilization_rate": round(len(entries) / total_slots * 100) if total_slots else 0,
            "summary": dict(by_category),
            "subjects_without_teachers": [r["subject_name"] for r in requirements if r["teacher_id"] is None],
            "teachers_near_limit": overloaded,
        }


def timetable_grid(rows: List[Timetable]) -> Dict[str, List[Dict[str, Any]]]:
    """Group rows by day in Monday..Friday order, each day sorted by period."""
    grid: Dict[str, List[Dict[str, Any]]] = {day: [] for day in WORKING_DAYS}
    for row in sorted(rows, key=lambda r: r.period):
        grid.setdefault(row.day_of_week, []).append({
            "id": str(row.id),
            "period": row.period,
            "start_time": row.start_time,
            "end_time": row.end_time,
            "subject_id": str(row.subject_id),
            "subject": row.subject.name if row.subject else None,
            "teacher_id": str(row.teacher_id) if row.teacher_id else None,
            "teacher": row.teacher.full_name if row.teacher else None,
            "room": row.room,
            "status": getattr(row.status, "value", row.status),
        })
    return grid
