import math
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
from typing import List, Optional
from ..core.database import get_db
from ..core.auth import require_user
from ..models.academic_year import AcademicYear
from ..models.semester import Semester
from ..models.module import Module
from ..utils.calculations import (
    GRADE_POINTS,
    GpaResult,
    classify_gpa,
    grade_to_points,
    load_academic_record,
    summarize_academic_record,
)
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

MAX_MODULE_CREDITS = 100


# Request/Response Models
class YearCreate(BaseModel):
    year_name: str


class YearUpdate(BaseModel):
    year_name: str


class YearResponse(BaseModel):
    id: int
    year_name: str

    class Config:
        from_attributes = True


class SemesterCreate(BaseModel):
    semester_name: str


class SemesterUpdate(BaseModel):
    semester_name: str


class SemesterResponse(BaseModel):
    id: int
    semester_name: str
    academic_year_id: int

    class Config:
        from_attributes = True


class ModuleCreate(BaseModel):
    module_code: str
    module_name: str
    credits: float
    grade: Optional[str] = None


class ModuleUpdate(BaseModel):
    module_code: str
    module_name: str
    credits: float
    grade: Optional[str] = None


class ModuleResponse(BaseModel):
    id: int
    module_code: str
    module_name: str
    credits: float
    grade: Optional[str] = None
    grade_points: Optional[float] = None
    semester_id: int

    class Config:
        from_attributes = True


class SemesterSummary(BaseModel):
    id: int
    semester_name: str
    gpa: Optional[float] = None
    credits: float
    modules: List[ModuleResponse]


class YearSummary(BaseModel):
    id: int
    year_name: str
    gpa: Optional[float] = None
    credits: float
    semesters: List[SemesterSummary]


class GpaSummary(BaseModel):
    overall_gpa: Optional[float] = None
    overall_credits: float
    classification: str
    years: List[YearSummary]


class GradeScaleEntry(BaseModel):
    grade: str
    points: float


def _round(result: GpaResult) -> Optional[float]:
    return round(result.gpa, 2) if result.gpa is not None else None


def _clean_name(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise HTTPException(status_code=400, detail=f"{label} is required")
    return value


def _clean_module(module: ModuleCreate) -> dict:
    credits = module.credits
    if credits is None or not math.isfinite(credits) or credits <= 0:
        raise HTTPException(status_code=400, detail="Credits must be greater than zero")
    if credits > MAX_MODULE_CREDITS:
        raise HTTPException(status_code=400, detail=f"Credits cannot exceed {MAX_MODULE_CREDITS}")

    grade = (module.grade or "").strip().upper() or None
    try:
        grade_points = grade_to_points(grade)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "module_code": _clean_name(module.module_code, "Module code"),
        "module_name": _clean_name(module.module_name, "Module name"),
        "credits": float(module.credits),
        "grade": grade,
        "grade_points": grade_points,
    }


async def _get_year(db: AsyncSession, year_id: int, user_id: str) -> AcademicYear:
    result = await db.execute(
        select(AcademicYear).filter(AcademicYear.id == year_id, AcademicYear.user_id == user_id)
    )
    year = result.scalar_one_or_none()
    if not year:
        raise HTTPException(status_code=404, detail="Academic year not found")
    return year


async def _get_semester(db: AsyncSession, semester_id: int, user_id: str) -> Semester:
    result = await db.execute(
        select(Semester).filter(Semester.id == semester_id, Semester.user_id == user_id)
    )
    semester = result.scalar_one_or_none()
    if not semester:
        raise HTTPException(status_code=404, detail="Semester not found")
    return semester


async def _get_module(db: AsyncSession, module_id: int, user_id: str) -> Module:
    result = await db.execute(
        select(Module).filter(Module.id == module_id, Module.user_id == user_id)
    )
    module = result.scalar_one_or_none()
    if not module:
        raise HTTPException(status_code=404, detail="Module not found")
    return module


# Summary
@router.get("", response_model=GpaSummary)
async def get_gpa_summary(db: AsyncSession = Depends(get_db), user_id: str = Depends(require_user)):
    try:
        years = await load_academic_record(db, user_id)
        summary = summarize_academic_record(years)

        year_summaries = []
        for year in years:
            semester_summaries = []
            for semester in year.semesters:
                result = summary["semesters"][semester.id]
                semester_summaries.append(SemesterSummary(
                    id=semester.id,
                    semester_name=semester.semester_name,
                    gpa=_round(result),
                    credits=result.total_credits,
                    modules=[ModuleResponse.model_validate(m) for m in semester.modules],
                ))

            result = summary["years"][year.id]
            year_summaries.append(YearSummary(
                id=year.id,
                year_name=year.year_name,
                gpa=_round(result),
                credits=result.total_credits,
                semesters=semester_summaries,
            ))

        overall = summary["overall"]
        return GpaSummary(
            overall_gpa=_round(overall),
            overall_credits=overall.total_credits,
            classification=classify_gpa(overall.gpa),
            years=year_summaries,
        )
    except Exception as e:
        logger.error(f"Error calculating GPA for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error fetching data")


@router.get("/grades", response_model=List[GradeScaleEntry])
async def get_grade_scale():
    return [GradeScaleEntry(grade=grade, points=points) for grade, points in GRADE_POINTS.items()]


# Academic years
@router.post("/years", response_model=YearResponse)
async def create_year(year: YearCreate, db: AsyncSession = Depends(get_db),
                      user_id: str = Depends(require_user)):
    try:
        db_year = AcademicYear(user_id=user_id, year_name=_clean_name(year.year_name, "Year name"))
        db.add(db_year)
        await db.commit()
        await db.refresh(db_year)
        return db_year
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating academic year: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Year add error")


@router.put("/years/{year_id}", response_model=YearResponse)
async def update_year(year_id: int, year: YearUpdate, db: AsyncSession = Depends(get_db),
                      user_id: str = Depends(require_user)):
    try:
        year_name = _clean_name(year.year_name, "Year name")
        db_year = await _get_year(db, year_id, user_id)

        db_year.year_name = year_name
        await db.commit()
        await db.refresh(db_year)
        return db_year
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating academic year: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Year update error")


@router.delete("/years/{year_id}")
async def delete_year(year_id: int, db: AsyncSession = Depends(get_db),
                      user_id: str = Depends(require_user)):
    try:
        db_year = await _get_year(db, year_id, user_id)

        # Semesters and their modules go with the year
        await db.delete(db_year)
        await db.commit()
        logger.info(f"Academic year {year_id} deleted by {user_id}")
        return {"message": "Academic Year Deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting academic year: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Year delete error")


# Semesters
@router.post("/years/{year_id}/semesters", response_model=SemesterResponse)
async def create_semester(year_id: int, semester: SemesterCreate, db: AsyncSession = Depends(get_db),
                          user_id: str = Depends(require_user)):
    try:
        semester_name = _clean_name(semester.semester_name, "Semester name")
        await _get_year(db, year_id, user_id)

        db_semester = Semester(user_id=user_id, academic_year_id=year_id, semester_name=semester_name)
        db.add(db_semester)
        await db.commit()
        await db.refresh(db_semester)
        return db_semester
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating semester: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Semester add error")


@router.put("/semesters/{semester_id}", response_model=SemesterResponse)
async def update_semester(semester_id: int, semester: SemesterUpdate, db: AsyncSession = Depends(get_db),
                          user_id: str = Depends(require_user)):
    try:
        semester_name = _clean_name(semester.semester_name, "Semester name")
        db_semester = await _get_semester(db, semester_id, user_id)

        db_semester.semester_name = semester_name
        await db.commit()
        await db.refresh(db_semester)
        return db_semester
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating semester: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Semester update error")


@router.delete("/semesters/{semester_id}")
async def delete_semester(semester_id: int, db: AsyncSession = Depends(get_db),
                          user_id: str = Depends(require_user)):
    try:
        db_semester = await _get_semester(db, semester_id, user_id)

        await db.delete(db_semester)
        await db.commit()
        logger.info(f"Semester {semester_id} deleted by {user_id}")
        return {"message": "Semester Deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting semester: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Semester delete error")


# Modules
@router.post("/semesters/{semester_id}/modules", response_model=ModuleResponse)
async def create_module(semester_id: int, module: ModuleCreate, db: AsyncSession = Depends(get_db),
                        user_id: str = Depends(require_user)):
    try:
        fields = _clean_module(module)
        await _get_semester(db, semester_id, user_id)

        db_module = Module(user_id=user_id, semester_id=semester_id, **fields)
        db.add(db_module)
        await db.commit()
        await db.refresh(db_module)
        return db_module
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating module: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Module add error")


@router.put("/modules/{module_id}", response_model=ModuleResponse)
async def update_module(module_id: int, module: ModuleUpdate, db: AsyncSession = Depends(get_db),
                        user_id: str = Depends(require_user)):
    try:
        fields = _clean_module(module)
        db_module = await _get_module(db, module_id, user_id)

        for key, value in fields.items():
            setattr(db_module, key, value)
        await db.commit()
        await db.refresh(db_module)
        return db_module
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating module: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Module update error")


@router.delete("/modules/{module_id}")
async def delete_module(module_id: int, db: AsyncSession = Depends(get_db),
                        user_id: str = Depends(require_user)):
    try:
        db_module = await _get_module(db, module_id, user_id)

        await db.delete(db_module)
        await db.commit()
        return {"message": "Module Deleted"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting module: {e}")
        await db.rollback()
        raise HTTPException(status_code=500, detail="Module delete error")
