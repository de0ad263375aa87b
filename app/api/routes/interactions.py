from fastapi import APIRouter, Depends, Query

from app.api.deps import get_interaction_service
from app.domain.schemas import (
    ClientMemoryCreate,
    InteractionResponse,
    MemoryCountResponse,
    MessageCreate,
    ReactionCreate,
)
from app.services.interactions import InteractionService

router = APIRouter()


@router.post("/reactions", response_model=InteractionResponse, response_model_exclude_none=True)
async def create_reaction(
    data: ReactionCreate,
    service: InteractionService = Depends(get_interaction_service),
):
    reaction = service.record_reaction(data.user_id, data.emoji)
    return InteractionResponse(id=reaction["id"])


@router.post("/messages", response_model=InteractionResponse, response_model_exclude_none=True)
async def create_message(
    data: MessageCreate,
    service: InteractionService = Depends(get_interaction_service),
):
    message = service.record_message(data.user_id, data.content, data.type, data.emoji)
    return InteractionResponse(id=message["id"])


@router.post("/memories/admin", response_model=InteractionResponse, response_model_exclude_none=True)
async def send_admin_memory(service: InteractionService = Depends(get_interaction_service)):
    """Admin's once-a-day "Nhớ"; 429 with limitReached=true after the first."""
    memory = service.send_admin_memory()
    return InteractionResponse(id=memory["id"], message="Đã gửi năng lượng")


@router.post("/memories/client", response_model=InteractionResponse, response_model_exclude_none=True)
async def send_client_memory(
    data: ClientMemoryCreate,
    service: InteractionService = Depends(get_interaction_service),
):
    memory = service.send_client_memory(data.user_id)
    return InteractionResponse(id=memory["id"])


@router.get("/memories/admin-count", response_model=MemoryCountResponse)
def admin_memory_count(
    user_id: str = Query(..., alias="userId"),
    service: InteractionService = Depends(get_interaction_service),
):
    return MemoryCountResponse(count=service.count_admin_memories(user_id))
