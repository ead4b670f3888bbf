from typing import Any, Optional, Dict
from pydantic import BaseModel
from bson import ObjectId

class APIResponse(BaseModel):
    success: bool = True
    message: str = "Success"
    data: Optional[Any] = None
    error: Optional[Dict[str, Any]] = None

def to_jsonable(obj):
    """ObjectIds to str, models to their wire (alias) form, recursively."""
    if isinstance(obj, ObjectId):
        return str(obj)
    elif isinstance(obj, BaseModel):
        return to_jsonable(obj.model_dump(by_alias=True))
    elif isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    elif isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    else:
        return obj

def success_response(data: Any = None, message: str = "Success") -> APIResponse:
    return APIResponse(success=True, message=message, data=to_jsonable(data))
