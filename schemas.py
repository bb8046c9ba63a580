"""
Request payload models.

Bodies arrive in camelCase from the SPA (``firstName``); snake_case names are
accepted too. Update models leave every field optional and are dumped with
``exclude_unset`` so only the fields actually sent are written.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$")

RoleName = Literal["super_admin", "school_admin", "admin", "teacher", "student", "parent"]
EducationSystem = Literal["anglophone", "francophone"]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    def changes(self) -> dict[str, Any]:
        """Fields present in the request, keyed by column name."""
        return self.model_dump(exclude_unset=True)


def _check_email(value: str) -> str:
    value = value.strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError("must be a valid email address")
    return value


def _naive_local(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class AccountFields(ApiModel):
    """Login identity shared by the role-specific create payloads."""

    email: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=6)
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: str = ""
    school_id: Optional[int] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email(v) if v is not None else v

    def has_account(self) -> bool:
        return all([self.email, self.password, self.first_name, self.last_name])


# ── Auth ───────────────────────────────────────────────────

class RegisterRequest(ApiModel):
    email: str
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: Literal["teacher", "student", "parent"] = "student"
    phone: str = ""
    school_id: Optional[int] = None
    education_system: Optional[EducationSystem] = None
    subsystem: Optional[EducationSystem] = None
    language: Literal["en", "fr"] = "en"
    parent_type: Optional[Literal["father", "mother", "guardian"]] = None
    grade_level: int = Field(default=1, ge=1, le=12)
    department: str = ""

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _check_email(v)

    @property
    def system(self) -> str:
        return self.education_system or self.subsystem or "anglophone"


class LoginRequest(ApiModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_lower(cls, v: str) -> str:
        return v.strip().lower()


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    language: Optional[Literal["en", "fr"]] = None
    education_system: Optional[EducationSystem] = None


class ChangePasswordRequest(ApiModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)


# ── Users ──────────────────────────────────────────────────

class UserCreate(ApiModel):
    email: str
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: RoleName
    phone: str = ""
    school_id: Optional[int] = None
    education_system: EducationSystem = "anglophone"

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _check_email(v)


class UserUpdate(ApiModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    role: Optional[RoleName] = None
    is_active: Optional[bool] = None
    school_id: Optional[int] = None
    education_system: Optional[EducationSystem] = None


# ── Students / teachers / parents ──────────────────────────

class StudentCreate(AccountFields):
    user_id: Optional[int] = None
    student_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    grade_level: int = Field(ge=1, le=12)
    date_of_birth: date
    parent_id: Optional[int] = None
    class_id: Optional[int] = None
    address: str = ""
    emergency_contact: str = ""
    enrollment_date: Optional[date] = None

    @model_validator(mode="after")
    def check_identity(self) -> "StudentCreate":
        if self.user_id is None and not self.has_account():
            raise ValueError("Provide userId or email, password, firstName and lastName")
        return self


class StudentUpdate(ApiModel):
    student_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    grade_level: Optional[int] = Field(default=None, ge=1, le=12)
    date_of_birth: Optional[date] = None
    parent_id: Optional[int] = None
    class_id: Optional[int] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None
    enrollment_date: Optional[date] = None


class TeacherCreate(AccountFields):
    user_id: Optional[int] = None
    employee_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    department: str = ""
    hire_date: Optional[date] = None
    salary: Optional[float] = Field(default=None, ge=0)
    qualification: str = ""
    specialization: str = ""

    @model_validator(mode="after")
    def check_identity(self) -> "TeacherCreate":
        if self.user_id is None and not self.has_account():
            raise ValueError("Provide userId or email, password, firstName and lastName")
        return self


class TeacherUpdate(ApiModel):
    employee_id: Optional[str] = Field(default=None, min_length=1, max_length=50)
    department: Optional[str] = None
    hire_date: Optional[date] = None
    salary: Optional[float] = Field(default=None, ge=0)
    qualification: Optional[str] = None
    specialization: Optional[str] = None


class ParentCreate(ApiModel):
    email: str
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: str = ""
    school_id: Optional[int] = None
    parent_type: Literal["father", "mother", "guardian"] = "guardian"
    occupation: str = ""
    workplace: str = ""
    address: str = ""
    emergency_contact: str = ""

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _check_email(v)


class ParentUpdate(ApiModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = None
    parent_type: Optional[Literal["father", "mother", "guardian"]] = None
    occupation: Optional[str] = None
    workplace: Optional[str] = None
    address: Optional[str] = None
    emergency_contact: Optional[str] = None


# ── Schools ────────────────────────────────────────────────

def _check_year(v: Optional[int]) -> Optional[int]:
    if v is not None and not 1800 <= v <= date.today().year:
        raise ValueError(f"must be between 1800 and {date.today().year}")
    return v


class SchoolCreate(ApiModel):
    name: str = Field(min_length=2, max_length=200)
    address: str = ""
    city: str = ""
    region: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    principal_name: str = ""
    established_year: Optional[int] = None
    education_system: EducationSystem = "anglophone"

    @field_validator("established_year")
    @classmethod
    def check_year(cls, v: Optional[int]) -> Optional[int]:
        return _check_year(v)

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        return _check_email(v) if v else v


class SchoolUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    address: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    principal_name: Optional[str] = None
    established_year: Optional[int] = None
    education_system: Optional[EducationSystem] = None
    is_active: Optional[bool] = None

    @field_validator("established_year")
    @classmethod
    def check_year(cls, v: Optional[int]) -> Optional[int]:
        return _check_year(v)


class SchoolWithAdminCreate(SchoolCreate):
    admin_email: str
    admin_password: str = Field(min_length=6)
    admin_first_name: str = Field(min_length=1, max_length=100)
    admin_last_name: str = Field(min_length=1, max_length=100)
    admin_phone: str = ""

    @field_validator("admin_email")
    @classmethod
    def check_admin_email(cls, v: str) -> str:
        return _check_email(v)


# ── Subjects / classes ─────────────────────────────────────

class SubjectCreate(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, max_length=20)
    description: str = ""
    credits: int = Field(default=1, ge=0)
    school_id: Optional[int] = None


class SubjectUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    code: Optional[str] = Field(default=None, max_length=20)
    description: Optional[str] = None
    credits: Optional[int] = Field(default=None, ge=0)


def _check_time(v: Optional[str]) -> Optional[str]:
    if v and not TIME_RE.match(v):
        raise ValueError("must be a time in HH:MM format")
    return v


class ClassCreate(ApiModel):
    name: str = Field(min_length=1, max_length=100)
    subject_id: int
    teacher_id: Optional[int] = None
    school_id: Optional[int] = None
    class_level: Optional[int] = Field(default=None, ge=1, le=6)
    room_number: str = ""
    schedule_days: str = ""
    start_time: str = ""
    end_time: str = ""
    max_students: int = Field(default=30, ge=1)
    semester: str = ""
    academic_year: str = ""

    @field_validator("start_time", "end_time")
    @classmethod
    def check_times(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)

    @model_validator(mode="after")
    def check_ordered(self) -> "ClassCreate":
        if self.start_time and self.end_time:
            start = tuple(int(p) for p in self.start_time.split(":"))
            end = tuple(int(p) for p in self.end_time.split(":"))
            if end <= start:
                raise ValueError("endTime must be after startTime")
        return self


class ClassUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    subject_id: Optional[int] = None
    teacher_id: Optional[int] = None
    class_level: Optional[int] = Field(default=None, ge=1, le=6)
    room_number: Optional[str] = None
    schedule_days: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    max_students: Optional[int] = Field(default=None, ge=1)
    semester: Optional[str] = None
    academic_year: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def check_times(cls, v: Optional[str]) -> Optional[str]:
        return _check_time(v)


# ── Grades ─────────────────────────────────────────────────

class GradeCreate(ApiModel):
    student_id: int
    class_id: int
    assignment_name: str = Field(min_length=1, max_length=200)
    assignment_type: str = "assignment"
    points_earned: float = Field(ge=0)
    points_possible: float = Field(gt=0)
    comments: str = ""

    @model_validator(mode="after")
    def check_bounded(self) -> "GradeCreate":
        if self.points_earned > self.points_possible:
            raise ValueError("pointsEarned cannot exceed pointsPossible")
        return self


class GradeUpdate(ApiModel):
    assignment_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    assignment_type: Optional[str] = None
    points_earned: Optional[float] = Field(default=None, ge=0)
    points_possible: Optional[float] = Field(default=None, gt=0)
    comments: Optional[str] = None


# ── Quizzes ────────────────────────────────────────────────

QuestionType = Literal["multiple_choice", "true_false", "short_answer", "essay"]


class QuestionIn(ApiModel):
    question_text: str = Field(min_length=1)
    question_type: QuestionType = "multiple_choice"
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    points: float = Field(default=1, gt=0)
    question_order: Optional[int] = None

    @model_validator(mode="after")
    def check_consistent(self) -> "QuestionIn":
        if self.question_type == "multiple_choice":
            if len(self.options) < 2:
                raise ValueError("multiple_choice questions need at least two options")
            if self.correct_answer and self.correct_answer.lower() not in [o.lower() for o in self.options]:
                raise ValueError("correctAnswer must be one of the options")
        if self.question_type == "true_false" and self.correct_answer:
            if self.correct_answer.lower() not in ("true", "false"):
                raise ValueError("correctAnswer must be true or false")
        return self


class QuizCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    class_id: int
    subject_id: Optional[int] = None
    time_limit_minutes: int = Field(default=30, ge=5, le=180)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Literal["draft", "active", "closed"] = "draft"
    questions: list[QuestionIn] = Field(default_factory=list)

    @field_validator("start_date", "end_date")
    @classmethod
    def check_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_local(v)

    @model_validator(mode="after")
    def check_window(self) -> "QuizCreate":
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class QuizUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    subject_id: Optional[int] = None
    time_limit_minutes: Optional[int] = Field(default=None, ge=5, le=180)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[Literal["draft", "active", "closed"]] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def check_dates(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _naive_local(v)


class QuizSubmit(ApiModel):
    answers: dict[str, Any] | list[Any]


class SubmissionGrade(ApiModel):
    score: float = Field(ge=0)
    feedback: str = ""


# ── Lesson plans ───────────────────────────────────────────

class LessonPlanCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    subject_id: int
    class_id: Optional[int] = None
    teacher_id: Optional[int] = None
    objectives: str = ""
    materials: str = ""
    activities: str = ""
    assessment: str = ""
    homework: str = ""
    duration_minutes: int = Field(default=45, ge=1, le=600)
    lesson_date: Optional[date] = None
    status: Literal["draft", "published", "archived"] = "draft"


class LessonPlanUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    subject_id: Optional[int] = None
    class_id: Optional[int] = None
    objectives: Optional[str] = None
    materials: Optional[str] = None
    activities: Optional[str] = None
    assessment: Optional[str] = None
    homework: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=600)
    lesson_date: Optional[date] = None
    status: Optional[Literal["draft", "published", "archived"]] = None


# ── Files ──────────────────────────────────────────────────

RelatedType = Literal["lesson_plan", "quiz", "assignment", "general"]


class FileUploadForm(ApiModel):
    related_type: RelatedType = "general"
    related_id: Optional[int] = None
    is_public: bool = False
    description: str = ""


class FileUpdate(ApiModel):
    original_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    related_type: Optional[RelatedType] = None
    related_id: Optional[int] = None
    is_public: Optional[bool] = None


# ── Notifications ──────────────────────────────────────────

class NotificationCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    type: Literal["info", "warning", "success", "error"] = "info"
    user_id: Optional[int] = None
    user_role: Optional[RoleName] = None
    school_id: Optional[int] = None


# ── CMS ────────────────────────────────────────────────────

ContentType = Literal["quiz", "lesson_plan", "scheme_of_work", "pedagogic_project", "resource"]


class ContentCreate(ApiModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    content_type: ContentType
    class_level: Optional[int] = Field(default=None, ge=1, le=6)
    education_system: EducationSystem = "anglophone"
    subject: str = ""
    is_premium: bool = False
    price: float = Field(default=0, ge=0)


class ContentUpdate(ApiModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    content_type: Optional[ContentType] = None
    class_level: Optional[int] = Field(default=None, ge=1, le=6)
    education_system: Optional[EducationSystem] = None
    subject: Optional[str] = None
    is_premium: Optional[bool] = None
    price: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class PackageCreate(ApiModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    price: float = Field(ge=0)
    duration_days: int = Field(default=30, ge=1)
    content_ids: list[int] = Field(default_factory=list)


class SubscriptionCreate(ApiModel):
    school_id: int
    package_id: int
    amount: Optional[float] = Field(default=None, ge=0)
    start_date: Optional[date] = None
