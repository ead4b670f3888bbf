from pydantic import BaseModel, Field

class SubjectKey(BaseModel):
    class_name: str = Field(..., alias="class", min_length=1)
    section: str = Field(..., min_length=1)
    term: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)

    class Config:
        populate_by_name = True

    def as_filter(self) -> dict:
        return {"class": self.class_name, "section": self.section, "term": self.term, "name": self.name}

class SubjectCreate(SubjectKey):
    full_marks: float = Field(..., alias="fullMarks", ge=0, description="Maximum marks")
    passing_marks: float = Field(..., alias="passingMarks", ge=0, description="Pass mark")

class SubjectUpdate(BaseModel):
    original: SubjectKey
    updated: SubjectCreate
