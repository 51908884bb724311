from .entity_resolver import EntityCatalog, EntityResolver, ResolutionResult
from .errors import ClubStatsError, ErrorCode
from .models import ChatbotResponse, ResponseEnvelope, error_response, success_response

__all__ = [
    'ChatbotResponse',
    'ClubStatsError',
    'EntityCatalog',
    'EntityResolver',
    'ErrorCode',
    'ResolutionResult',
    'ResponseEnvelope',
    'error_response',
    'success_response',
]
