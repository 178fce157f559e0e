"""
Server inventory endpoints with Redis caching on the listing.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.logging import get_logger
from labbook.core.security import Principal, get_current_principal
from labbook.db.session import get_db
from labbook.schemas.server import ServerCreate, ServerDetailResponse, ServerResponse, ServerUpdate
from labbook.schemas.user import MessageResponse
from labbook.services import server_service
from labbook.services.authorization import Operation, require
from labbook.services.cache_service import get_cached_servers, invalidate_server_cache, set_cached_servers

logger = get_logger(__name__)
router = APIRouter(prefix="/servers", tags=["Servers"])


@router.get("", response_model=list[ServerResponse])
async def list_servers_endpoint(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """
    List servers with derived status and current booking.
    Results are cached in Redis briefly and invalidated on every booking
    or inventory change.
    """
    require(principal, Operation.VIEW_SERVERS)

    cached = await get_cached_servers()
    if cached is not None:
        logger.info("servers_list_cache_hit")
        return [ServerResponse.model_validate(item) for item in cached]

    servers = await server_service.list_servers(db)
    response = [server_service.to_server_response(s) for s in servers]
    await set_cached_servers([r.model_dump(mode="json") for r in response])
    return response


@router.get("/{server_id}", response_model=ServerDetailResponse)
async def get_server_endpoint(
    server_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Single server with its full booking history. Not cached."""
    require(principal, Operation.VIEW_SERVERS)
    server = await server_service.get_server(db, server_id)
    return server_service.to_server_detail(server)


@router.post("", response_model=ServerResponse, status_code=status.HTTP_201_CREATED)
async def create_server_endpoint(
    server_data: ServerCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    server = await server_service.create_server(db, principal, server_data)
    await db.commit()
    await invalidate_server_cache()
    return server_service.to_server_response(server)


@router.put("/{server_id}", response_model=ServerResponse)
async def update_server_endpoint(
    server_id: str,
    server_data: ServerUpdate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    server = await server_service.update_server(db, principal, server_id, server_data)
    await db.commit()
    await invalidate_server_cache()
    return server_service.to_server_response(server)


@router.delete("/{server_id}", response_model=MessageResponse)
async def delete_server_endpoint(
    server_id: str,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    await server_service.delete_server(db, principal, server_id)
    await db.commit()
    await invalidate_server_cache()
    return MessageResponse(message="Server deleted successfully")
