from fastapi import APIRouter, Response

from app.models import TaskSummary
from app.services.task_service import TaskServiceDep

router = APIRouter(tags=["summary"])


@router.get("/summary", response_model=TaskSummary)
async def get_summary(service: TaskServiceDep, response: Response):
    """Totals, completion percentage and average completion time in seconds"""
    result = await service.get_summary()
    response.headers["X-Cache"] = "HIT" if result.hit else "MISS"
    return result.value
