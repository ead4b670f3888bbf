import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from app.core.exceptions import (
    ConcurrentRankConflict, PersistenceFailure, ResultAccessDenied, ResultNotFound, ResultValidationError
)
from app.schemas.result import AccessScope, StudentResult
from app.services.ranking_engine import RankingOutcome
from app.services.result_service import ResultService, get_result_service
from app.utils.response import success_response

logger = logging.getLogger("result_controller")

router = APIRouter(prefix="/results", tags=["results"])

def get_access_scope(
    role: str = Query(None),
    teacher_class: str = Query(None, alias="teacherClass"),
    teacher_section: str = Query(None, alias="teacherSection"),
) -> AccessScope:
    return AccessScope(role=role, teacher_class=teacher_class, teacher_section=teacher_section)

def _outcome(outcome: RankingOutcome) -> dict:
    return {
        "result": outcome.record,
        "affected": outcome.affected,
        "issues": outcome.issues,
    }

def _to_http(e: Exception) -> HTTPException:
    if isinstance(e, ResultValidationError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ResultAccessDenied):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ResultNotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ConcurrentRankConflict):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, PersistenceFailure):
        return HTTPException(status_code=502, detail=e.to_dict())
    logger.exception("Unexpected error handling result request")
    return HTTPException(status_code=500, detail=f"Internal error: {str(e)}")

@router.post("")
async def save_result(
    record: StudentResult,
    scope: AccessScope = Depends(get_access_scope),
    service: ResultService = Depends(get_result_service),
):
    """Create or update a student result and re-rank its class/section/term."""
    try:
        outcome = await service.save_result(record, scope)
        return success_response(data=_outcome(outcome), message="Student result saved")
    except Exception as e:
        raise _to_http(e)

@router.post("/preview")
async def preview_result(record: StudentResult, service: ResultService = Depends(get_result_service)):
    """Derived fields only, nothing is stored."""
    result = service.preview(record)
    return success_response(data={"result": result, "issues": result.issues})

@router.get("")
async def list_results(
    name: str = Query(None),
    roll_number: str = Query(None, alias="rollNumber"),
    dob: str = Query(None),
    class_name: str = Query(None, alias="class"),
    section: str = Query(None),
    exam_term: str = Query(None, alias="examTerm"),
    scope: AccessScope = Depends(get_access_scope),
    service: ResultService = Depends(get_result_service),
):
    filters = {
        "name": name,
        "rollNumber": roll_number,
        "dob": dob,
        "class": class_name,
        "section": section,
        "examTerm": exam_term,
    }
    try:
        results = await service.list_results(filters, scope)
        return success_response(data=results)
    except Exception as e:
        raise _to_http(e)

@router.get("/{result_id}")
async def get_result(
    result_id: str,
    scope: AccessScope = Depends(get_access_scope),
    service: ResultService = Depends(get_result_service),
):
    try:
        result = await service.get_result(result_id, scope)
        return success_response(data=result)
    except Exception as e:
        raise _to_http(e)

@router.delete("/{result_id}")
async def delete_result(
    result_id: str,
    scope: AccessScope = Depends(get_access_scope),
    service: ResultService = Depends(get_result_service),
):
    try:
        outcome = await service.delete_result(result_id, scope)
        return success_response(data=_outcome(outcome), message="Student result deleted")
    except Exception as e:
        raise _to_http(e)
