from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator


class RegisterRequest(BaseModel):
    """Registration payload. Business validation happens in AuthService.register."""
    email: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    role: str = ""
    phone: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None

    # Student specific fields
    grade_level: Optional[int] = None
    class_section: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None

    # Teacher specific fields
    employee_id: Optional[str] = None
    school_id: Optional[int] = None
    specialization: Optional[str] = None
    years_experience: Optional[int] = None
    qualification: Optional[str] = None
    academic_year: Optional[str] = None
    bio: Optional[str] = None


class StudentProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: Optional[str] = None
    grade_level: int
    class_section: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    total_points: int = 0
    current_level: int = 1
    current_streak: int = 0
    longest_streak: int = 0


class TeacherProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: Optional[str] = None
    school_id: Optional[int] = None
    specialization: Optional[str] = None
    years_experience: Optional[int] = None
    qualification: Optional[str] = None
    academic_year: str
    bio: Optional[str] = None


class UserProfile(BaseModel):
    """Public view of a user; never carries password material."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    uuid: str
    email: str
    first_name: str
    last_name: str
    role: str
    avatar_url: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    gender: Optional[str] = None
    is_active: bool
    email_verified: bool
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    student_profile: Optional[StudentProfileOut] = None
    teacher_profile: Optional[TeacherProfileOut] = None

    @field_validator("role", "gender", mode="before")
    @classmethod
    def _enum_value(cls, v):
        return v.value if isinstance(v, Enum) else v


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "bearer"


class LoginResult(TokenPair):
    user: UserProfile
