from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base


class Semester(Base):
    __tablename__ = "semesters"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    semester_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    academic_year_id = Column(Integer, ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False)

    academic_year = relationship("AcademicYear", back_populates="semesters")
    modules = relationship(
        "Module",
        back_populates="semester",
        cascade="all, delete-orphan",
        order_by="Module.id",
    )
