from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from ..core.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    # Same value as the auth provider's uid
    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, default="")
    email = Column(String, nullable=False)
    avatar_url = Column(String, nullable=False, default="")
    university_name = Column(String, nullable=False, default="")
    degree_program = Column(String, nullable=False, default="")
    student_id_number = Column(String, nullable=False, default="")
    linkedin_url = Column(String, nullable=False, default="")
    portfolio_url = Column(String, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())
