import logging
from typing import Any, Dict, List
from app.core.config import settings
from app.core.exceptions import ResultAccessDenied, ResultNotFound
from app.repositories.result_repository import result_repository
from app.schemas.result import AccessScope, RankingPolicy, StudentResult
from app.services.ranking_engine import RankingEngine, RankingOutcome, recompute_derived

logger = logging.getLogger("result_service")

class ResultService:
    def __init__(self, repository=None, policy: RankingPolicy = None):
        self.repository = repository if repository is not None else result_repository
        self.engine = RankingEngine(self.repository, policy or RankingPolicy.from_settings(settings))

    @property
    def policy(self) -> RankingPolicy:
        return self.engine.policy

    def _check_scope(self, scope: AccessScope, record: StudentResult):
        if not scope.allows(record.class_name, record.section):
            logger.warning("Teacher of %s-%s denied access to result in %s-%s",
                           scope.teacher_class, scope.teacher_section, record.class_name, record.section)
            raise ResultAccessDenied("Teachers can only access results of their assigned class and section")

    async def save_result(self, record: StudentResult, scope: AccessScope) -> RankingOutcome:
        self._check_scope(scope, record)
        if record.id and scope.is_teacher:
            stored = await self.repository.find_by_id(record.id)
            if stored is not None:
                self._check_scope(scope, stored)
        return await self.engine.on_save(record)

    async def get_result(self, result_id: str, scope: AccessScope) -> StudentResult:
        record = await self.repository.find_by_id(result_id)
        if record is None:
            raise ResultNotFound(result_id)
        self._check_scope(scope, record)
        return record

    async def list_results(self, filters: Dict[str, Any], scope: AccessScope) -> List[StudentResult]:
        if scope.is_teacher:
            if not scope.teacher_class or not scope.teacher_section:
                return []
            filters = {
                "class": scope.teacher_class,
                "section": scope.teacher_section,
                "rollNumber": filters.get("rollNumber"),
            }
        return await self.repository.find(filters)

    async def delete_result(self, result_id: str, scope: AccessScope) -> RankingOutcome:
        await self.get_result(result_id, scope)
        return await self.engine.on_delete(result_id)

    def preview(self, record: StudentResult) -> StudentResult:
        return recompute_derived(record, self.policy)

result_service = ResultService()

def get_result_service() -> ResultService:
    return result_service
