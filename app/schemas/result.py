from typing import Any, Dict, List, NamedTuple, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

class GroupKey(NamedTuple):
    """Peer group of a result: every record sharing it is ranked together."""
    class_name: str
    section: str
    exam_term: str

    def as_filter(self) -> Dict[str, str]:
        return {"class": self.class_name, "section": self.section, "examTerm": self.exam_term}

    def __str__(self):
        return f"{self.class_name}-{self.section}/{self.exam_term}"

class SubjectMark(BaseModel):
    name: str = Field("", description="Subject name")
    # Kept loose so a malformed mark reaches the engine and is reported, not rejected
    marks: Optional[Any] = Field(None, description="Marks obtained")

class CoScholasticGrade(BaseModel):
    name: str
    grade: str

class StudentResult(BaseModel):
    id: Optional[str] = Field(None, description="Surrogate id (Mongo _id)")
    name: Optional[str] = None
    father_name: Optional[str] = Field(None, alias="fatherName")
    mother_name: Optional[str] = Field(None, alias="motherName")
    roll_number: Optional[str] = Field(None, alias="rollNumber")
    dob: Optional[str] = None
    class_name: Optional[str] = Field(None, alias="class")
    section: Optional[str] = None
    exam_term: Optional[str] = Field(None, alias="examTerm")
    academic_session: Optional[str] = Field(None, alias="academicSession")
    attendance: Optional[str] = None
    discipline: Optional[str] = None

    full_marks: float = Field(0, alias="fullMarks")
    subjects: List[SubjectMark] = Field(default_factory=list)
    marks: Optional[Dict[str, Any]] = Field(None, description="Fixed-key marks map, folded into subjects")
    co_scholastic: List[CoScholasticGrade] = Field(default_factory=list, alias="coScholastic")

    # Derived
    total: float = 0
    percent: float = 0
    pass_fail: Optional[str] = Field(None, alias="passFail")
    failed_subjects_count: int = Field(0, alias="failedSubjectsCount")
    rank: int = 0

    issues: List[str] = Field(default_factory=list, exclude=True)

    class Config:
        populate_by_name = True

    @field_validator("roll_number", "class_name", "section", "exam_term", mode="before")
    @classmethod
    def normalize_key_part(cls, value):
        # Grouping and natural-key lookups compare these verbatim
        return str(value).strip() if value is not None else value

    @model_validator(mode="after")
    def fold_marks_map(self):
        if self.marks and not self.subjects:
            self.subjects = [SubjectMark(name=name, marks=value) for name, value in self.marks.items()]
        self.marks = None
        return self

    @property
    def group_key(self) -> GroupKey:
        return GroupKey(self.class_name, self.section, self.exam_term)

    @property
    def natural_key(self) -> Dict[str, Any]:
        return {
            "class": self.class_name,
            "section": self.section,
            "rollNumber": self.roll_number,
            "examTerm": self.exam_term,
        }

    def derived(self) -> tuple:
        return (self.total, self.percent, self.rank, self.pass_fail, self.failed_subjects_count)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id", "marks", "issues"})

class RankingPolicy(BaseModel):
    identity: str = Field("surrogate", pattern="^(surrogate|natural)$")
    full_marks_scope: str = Field("subject", pattern="^(subject|result)$")
    pass_marks: float = 33
    exclude_failed: bool = False

    @classmethod
    def from_settings(cls, settings) -> "RankingPolicy":
        return cls(
            identity=settings.result_identity,
            full_marks_scope=settings.full_marks_scope,
            pass_marks=settings.pass_marks,
            exclude_failed=settings.exclude_failed_from_rank,
        )

class AccessScope(BaseModel):
    """Who is calling: admins see everything, teachers only their own class/section."""
    role: Optional[str] = None
    teacher_class: Optional[str] = Field(None, alias="teacherClass")
    teacher_section: Optional[str] = Field(None, alias="teacherSection")

    class Config:
        populate_by_name = True

    @property
    def is_teacher(self) -> bool:
        return self.role == "teacher"

    def allows(self, class_name: Optional[str], section: Optional[str]) -> bool:
        if not self.is_teacher:
            return True
        return bool(self.teacher_class) and class_name == self.teacher_class and section == self.teacher_section
