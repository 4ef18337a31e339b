from .endpoints import EndpointSet, normalize_endpoint
from .topics import TopicRegistry

__all__ = ["EndpointSet", "TopicRegistry", "normalize_endpoint"]
