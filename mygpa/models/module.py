from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base


class Module(Base):
    __tablename__ = "modules"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, index=True, nullable=False)
    module_code = Column(String, nullable=False)
    module_name = Column(String, nullable=False)
    credits = Column(Float, nullable=False)
    # Letter grade; NULL until the result is known
    grade = Column(String, nullable=True)
    grade_points = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    semester_id = Column(Integer, ForeignKey("semesters.id", ondelete="CASCADE"), nullable=False)

    semester = relationship("Semester", back_populates="modules")
