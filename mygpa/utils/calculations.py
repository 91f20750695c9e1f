import math
from collections.abc import Mapping
from typing import Dict, Iterable, List, NamedTuple, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from ..models.academic_year import AcademicYear
from ..models.semester import Semester
import logging

logger = logging.getLogger(__name__)

# Letter grade -> grade points
GRADE_POINTS = {
    "A+": 4.0,
    "A": 4.0,
    "A-": 3.7,
    "B+": 3.3,
    "B": 3.0,
    "B-": 2.7,
    "C+": 2.3,
    "C": 2.0,
    "C-": 1.7,
    "D+": 1.3,
    "D": 1.0,
    "E": 0.0,
}

# Lowest GPA for each class, best first
GPA_CLASSES = [
    (3.70, "First Class"),
    (3.30, "Second Class (Upper Division)"),
    (3.00, "Second Class (Lower Division)"),
    (2.00, "Pass"),
]


class GpaResult(NamedTuple):
    gpa: Optional[float]
    total_credits: float


def _value(module, key):
    if isinstance(module, Mapping):
        return module.get(key)
    return getattr(module, key, None)


def grade_to_points(grade: Optional[str]) -> Optional[float]:
    """
    Look up the points for a letter grade.
    Empty grades have no points; unknown grades raise ValueError.
    """
    if grade is None or not grade.strip():
        return None

    grade = grade.strip().upper()
    if grade not in GRADE_POINTS:
        raise ValueError(f"Invalid grade: {grade}")
    return GRADE_POINTS[grade]


def calculate_gpa(modules: Iterable) -> GpaResult:
    """
    Credit-weighted GPA: sum(grade_points * credits) / sum(credits).

    Only modules with a grade and finite positive credits count, so ungraded
    modules neither add credits nor pull the average down. Returns a GPA of
    None when nothing is graded yet.
    """
    weighted_points = 0.0
    total_credits = 0.0

    for module in modules:
        grade = _value(module, "grade")
        if not grade:
            continue

        credits = float(_value(module, "credits") or 0)
        if not math.isfinite(credits) or credits <= 0:
            continue

        points = _value(module, "grade_points")
        if points is None:
            points = grade_to_points(grade)

        weighted_points += float(points) * credits
        total_credits += credits

    if total_credits == 0:
        return GpaResult(gpa=None, total_credits=0.0)

    return GpaResult(gpa=weighted_points / total_credits, total_credits=total_credits)


def classify_gpa(gpa: Optional[float]) -> str:
    if gpa is None:
        return "N/A"

    for threshold, label in GPA_CLASSES:
        if gpa >= threshold:
            return label
    return "Fail"


def summarize_academic_record(years: Iterable) -> dict:
    """
    Roll module grades up per semester, per year and overall.

    ``years`` are academic years with their semesters and modules loaded.
    Returns {"semesters": {id: GpaResult}, "years": {id: GpaResult},
    "overall": GpaResult}.
    """
    semester_results: Dict[int, GpaResult] = {}
    year_results: Dict[int, GpaResult] = {}
    all_modules: List = []

    for year in years:
        year_modules: List = []
        for semester in _value(year, "semesters") or []:
            modules = list(_value(semester, "modules") or [])
            semester_results[_value(semester, "id")] = calculate_gpa(modules)
            year_modules.extend(modules)

        year_results[_value(year, "id")] = calculate_gpa(year_modules)
        all_modules.extend(year_modules)

    return {
        "semesters": semester_results,
        "years": year_results,
        "overall": calculate_gpa(all_modules),
    }


async def load_academic_record(session: AsyncSession, user_id: str) -> List[AcademicYear]:
    """Fetch a user's years with semesters and modules eagerly loaded."""
    result = await session.execute(
        select(AcademicYear)
        .options(selectinload(AcademicYear.semesters).selectinload(Semester.modules))
        .filter(AcademicYear.user_id == user_id)
        .order_by(AcademicYear.created_at, AcademicYear.id)
    )
    years = result.scalars().all()
    logger.info(f"Loaded {len(years)} academic years for user {user_id}")
    return list(years)
