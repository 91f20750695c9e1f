from .auth_user import AuthUser
from .profile import Profile
from .document import Document
from .academic_year import AcademicYear
from .semester import Semester
from .module import Module

__all__ = [
    "AuthUser",
    "Profile",
    "Document",
    "AcademicYear",
    "Semester",
    "Module"
]
