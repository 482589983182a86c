"""Coach-facing schedule management endpoints.

The caller identifies the owning coach with `ownerId`; authenticating that
identity happens in front of Herald.
"""

from typing import Any

from fastapi import APIRouter, Query, Request, Response, status

from herald.server.schemas import CreateScheduleBody

router = APIRouter()


def _service(request: Request):
    return request.app.state.server.service


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_schedule(body: CreateScheduleBody, request: Request) -> dict[str, Any]:
    schedule = await _service(request).create(body.to_request())
    return schedule.to_dict()


@router.get("")
async def list_schedules(
    request: Request, owner_id: str = Query(alias="ownerId")
) -> dict[str, Any]:
    schedules = await _service(request).list_for_owner(owner_id)
    return {"schedules": [s.to_dict() for s in schedules]}


@router.get("/stats")
async def schedule_stats(
    request: Request, owner_id: str = Query(alias="ownerId")
) -> dict[str, Any]:
    return await _service(request).stats(owner_id)


@router.get("/{schedule_id}")
async def get_schedule(
    schedule_id: str, request: Request, owner_id: str = Query(alias="ownerId")
) -> dict[str, Any]:
    schedule, deliveries = await _service(request).get_with_deliveries(
        schedule_id, owner_id
    )
    data = schedule.to_dict()
    data["deliveries"] = [d.to_dict() for d in deliveries]
    return data


@router.post("/{schedule_id}/pause")
async def pause_schedule(
    schedule_id: str, request: Request, owner_id: str = Query(alias="ownerId")
) -> dict[str, Any]:
    schedule = await _service(request).pause(schedule_id, owner_id)
    return schedule.to_dict()


@router.post("/{schedule_id}/resume")
async def resume_schedule(
    schedule_id: str, request: Request, owner_id: str = Query(alias="ownerId")
) -> dict[str, Any]:
    schedule = await _service(request).resume(schedule_id, owner_id)
    return schedule.to_dict()


@router.post("/{schedule_id}/cancel")
async def cancel_schedule(
    schedule_id: str, request: Request, owner_id: str = Query(alias="ownerId")
) -> dict[str, Any]:
    schedule = await _service(request).cancel(schedule_id, owner_id)
    return schedule.to_dict()


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_schedule(
    schedule_id: str, request: Request, owner_id: str = Query(alias="ownerId")
) -> Response:
    await _service(request).delete(schedule_id, owner_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
