from labbook.models.user import User
from labbook.models.server import Server
from labbook.models.booking import Booking
from labbook.models.session import AuthSession

__all__ = ["User", "Server", "Booking", "AuthSession"]
