from .fastapi_app import create_api
from .flask_app import create_app
from .handlers import ENDPOINTS, ApiHandlers, ApiRequest, ApiResponse

__all__ = ["ApiHandlers", "ApiRequest", "ApiResponse", "ENDPOINTS", "create_api", "create_app"]
