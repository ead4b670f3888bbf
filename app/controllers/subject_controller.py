from fastapi import APIRouter, Depends, HTTPException, Query
from app.schemas.subject import SubjectCreate, SubjectKey, SubjectUpdate
from app.services.subject_service import SubjectService, get_subject_service
from app.utils.response import success_response

router = APIRouter(prefix="/subjects", tags=["subjects"])

@router.get("")
async def list_subjects(
    class_name: str = Query(None, alias="class"),
    section: str = Query(None),
    term: str = Query(None),
    service: SubjectService = Depends(get_subject_service),
):
    try:
        data = await service.list_subjects({"class": class_name, "section": section, "term": term})
        return success_response(data=data)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))

@router.post("", status_code=201)
async def create_subject(subject: SubjectCreate, service: SubjectService = Depends(get_subject_service)):
    try:
        created = await service.create_subject(subject)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if created is None:
        raise HTTPException(status_code=400, detail="Subject already exists")
    return success_response(data=created, message="Subject created")

@router.put("")
async def update_subject(payload: SubjectUpdate, service: SubjectService = Depends(get_subject_service)):
    try:
        updated = await service.update_subject(payload)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not updated:
        raise HTTPException(status_code=404, detail="Subject not found")
    return success_response(message="Subject updated")

@router.delete("")
async def delete_subject(key: SubjectKey, service: SubjectService = Depends(get_subject_service)):
    try:
        deleted = await service.delete_subject(key)
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Subject not found")
    return success_response(message="Subject deleted")
