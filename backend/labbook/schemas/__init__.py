from labbook.schemas.user import UserRegister, UserCreate, UserLogin, UserResponse, UserDetailResponse, Token
from labbook.schemas.server import ServerCreate, ServerUpdate, ServerResponse, ServerDetailResponse
from labbook.schemas.booking import BookingCreate, BookingExtend, BookingResponse
from labbook.schemas.digest import DigestResult, EmailStatus

__all__ = [
    "UserRegister", "UserCreate", "UserLogin", "UserResponse", "UserDetailResponse", "Token",
    "ServerCreate", "ServerUpdate", "ServerResponse", "ServerDetailResponse",
    "BookingCreate", "BookingExtend", "BookingResponse",
    "DigestResult", "EmailStatus",
]
