from app.repositories.subject_repository import subject_repository
from app.schemas.subject import SubjectCreate, SubjectKey, SubjectUpdate

class SubjectService:
    def __init__(self, repository=None):
        self.repository = repository if repository is not None else subject_repository

    async def list_subjects(self, filters: dict = None):
        return await self.repository.find_all(filters)

    async def create_subject(self, subject: SubjectCreate):
        """Subjects are unique per class, section, term and name; returns None on duplicate."""
        if await self.repository.find_one(subject.as_filter()):
            return None
        return await self.repository.create(subject.model_dump(by_alias=True))

    async def update_subject(self, payload: SubjectUpdate) -> bool:
        return await self.repository.update(payload.original.as_filter(), payload.updated.model_dump(by_alias=True))

    async def delete_subject(self, key: SubjectKey) -> bool:
        return await self.repository.delete(key.as_filter())

subject_service = SubjectService()

def get_subject_service() -> SubjectService:
    return subject_service
