from fastapi import APIRouter, Query

from taskapi.deps import TaskServiceDep
from taskapi.schemas import ActivityListResponse, CacheFlushResponse

router = APIRouter(tags=["maintenance"])


@router.get("/activities", response_model=ActivityListResponse)
async def recent_activities(service: TaskServiceDep, limit: int = Query(default=20)):
    """Most recent activity across all tasks"""
    activities = await service.recent_activities(limit)
    return ActivityListResponse(data=activities)


@router.delete("/cache", response_model=CacheFlushResponse)
async def flush_cache(service: TaskServiceDep):
    """Drop every cached task snapshot"""
    deleted = await service.flush_cache()
    return CacheFlushResponse(deleted=deleted)
