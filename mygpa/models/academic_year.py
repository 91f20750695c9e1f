from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base


class AcademicYear(Base):
    __tablename__ = "academic_years"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    year_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    semesters = relationship(
        "Semester",
        back_populates="academic_year",
        cascade="all, delete-orphan",
        order_by="Semester.id",
    )
