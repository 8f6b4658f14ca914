from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from flow.api.deps import get_member
from flow.db.session import get_db
from flow.models.brainstorm import User
from flow.schemas.brainstorm import IdeaDetail, IdeaDetailResponse, IdeaUpdate, IdeaUpdatedResponse, OkResponse
from flow.services.brainstorm_service import BrainstormService

router = APIRouter(prefix="/ideas", tags=["ideas"])


@router.get("/{idea_id}", response_model=IdeaDetailResponse)
async def idea_detail(idea_id: str, db: Session = Depends(get_db), _: User = Depends(get_member)):
    service = BrainstormService(db)
    idea = await run_in_threadpool(service.get_idea, idea_id)
    return IdeaDetailResponse(idea=IdeaDetail.model_validate(idea))


@router.patch("/{idea_id}", response_model=IdeaUpdatedResponse)
async def update_idea(
    idea_id: str, payload: IdeaUpdate, db: Session = Depends(get_db), user: User = Depends(get_member)
):
    service = BrainstormService(db)
    idea = await run_in_threadpool(service.update_idea, user, idea_id, payload)
    return IdeaUpdatedResponse(idea=IdeaDetail.model_validate(idea))


@router.delete("/{idea_id}", response_model=OkResponse)
async def delete_idea(idea_id: str, db: Session = Depends(get_db), user: User = Depends(get_member)):
    service = BrainstormService(db)
    await run_in_threadpool(service.delete_idea, user, idea_id)
    return OkResponse()
