"""
Server inventory service: CRUD for admins, derived-status views for everyone.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from labbook.core.exceptions import ConflictError, NotFoundError
from labbook.core.logging import get_logger
from labbook.core.security import Principal
from labbook.models.enums import NON_TERMINAL_STATUSES, ServerStatus
from labbook.models.server import Server
from labbook.schemas.booking import BookingResponse
from labbook.schemas.server import ServerCreate, ServerDetailResponse, ServerResponse, ServerUpdate
from labbook.services.authorization import Operation, require
from labbook.services.date_utils import utc_today
from labbook.services.status_resolver import current_booking, resolve_server_status

logger = get_logger(__name__)


def to_server_response(server: Server, today: Optional[date] = None) -> ServerResponse:
    """Project a loaded server into its read model with derived status."""
    today = today or utc_today()
    active = current_booking(server.id, server.bookings, today)
    return ServerResponse(
        id=server.id,
        name=server.name,
        specifications=server.specifications,
        location=server.location,
        status=resolve_server_status(server, today=today),
        current_booking=BookingResponse.model_validate(active) if active else None,
    )


def to_server_detail(server: Server, today: Optional[date] = None) -> ServerDetailResponse:
    summary = to_server_response(server, today)
    bookings = sorted(server.bookings, key=lambda b: b.created_at, reverse=True)
    return ServerDetailResponse(
        **summary.model_dump(),
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


async def get_server(db: AsyncSession, server_id: str) -> Server:
    result = await db.execute(select(Server).where(Server.id == server_id))
    server = result.scalar_one_or_none()
    if not server:
        raise NotFoundError(f"Server {server_id} not found")
    return server


async def list_servers(db: AsyncSession) -> list[Server]:
    result = await db.execute(select(Server).order_by(Server.name.asc()))
    return list(result.scalars().all())


async def count_available_servers(db: AsyncSession, today: Optional[date] = None) -> int:
    """Servers whose derived status is available right now."""
    servers = await list_servers(db)
    return sum(
        1 for server in servers
        if resolve_server_status(server, today=today) == ServerStatus.AVAILABLE
    )


async def create_server(db: AsyncSession, principal: Principal, data: ServerCreate) -> Server:
    require(principal, Operation.CREATE_SERVER)

    specs = data.specifications
    server = Server(
        name=data.name,
        cpu_spec=specs.cpu,
        memory_spec=specs.memory,
        storage_spec=specs.storage,
        gpu_spec=specs.gpu,
        location=data.location,
        status=data.status,
        bookings=[],
    )
    db.add(server)
    await db.flush()
    await db.refresh(server)

    logger.info("server_created", server_id=server.id, name=server.name, created_by=principal.id)
    return server


async def update_server(db: AsyncSession, principal: Principal, server_id: str, data: ServerUpdate) -> Server:
    """Apply only the fields present in the request."""
    require(principal, Operation.UPDATE_SERVER)
    server = await get_server(db, server_id)

    if data.name is not None:
        server.name = data.name
    if data.location is not None:
        server.location = data.location
    if data.status is not None:
        server.status = data.status

    specs = data.specifications
    if specs is not None:
        if specs.cpu is not None:
            server.cpu_spec = specs.cpu
        if specs.memory is not None:
            server.memory_spec = specs.memory
        if specs.storage is not None:
            server.storage_spec = specs.storage
        # gpu may be explicitly cleared with null
        if "gpu" in specs.model_fields_set:
            server.gpu_spec = specs.gpu

    await db.flush()
    await db.refresh(server)

    logger.info(
        "server_updated",
        server_id=server.id,
        fields=sorted(data.model_fields_set),
        status=server.status,
        updated_by=principal.id,
    )
    return server


async def delete_server(db: AsyncSession, principal: Principal, server_id: str) -> None:
    """Delete a server and its booking history, unless it is currently reserved."""
    require(principal, Operation.DELETE_SERVER)
    server = await get_server(db, server_id)

    occupying = [b for b in server.bookings if b.status in NON_TERMINAL_STATUSES]
    if occupying:
        logger.warning("server_delete_blocked", server_id=server.id, active_bookings=len(occupying))
        raise ConflictError(
            "Server has active bookings and cannot be deleted",
            code="ServerInUse",
        )

    await db.delete(server)
    await db.flush()
    logger.info("server_deleted", server_id=server_id, deleted_by=principal.id)
