"""
Dependency injection for FastAPI.
"""
import logging
from typing import Annotated, Optional
from fastapi import Depends

from field_hierarchy.config import settings
from field_hierarchy.infrastructure.gateway import PersistenceGateway
from field_hierarchy.infrastructure.memory_gateway import InMemoryGateway
from field_hierarchy.infrastructure.supabase_gateway import SupabaseGateway
from field_hierarchy.services.application.hierarchy_service import HierarchyService

logger = logging.getLogger(__name__)


# Singleton instance
_gateway: Optional[PersistenceGateway] = None


def get_gateway() -> PersistenceGateway:
    """
    Get or create the process-wide persistence gateway.
    
    Returns:
        Gateway selected by settings.store_backend
    """
    global _gateway
    if _gateway is None:
        if settings.store_backend == "memory":
            _gateway = InMemoryGateway()
        else:
            _gateway = SupabaseGateway()
        logger.info(f"Using {settings.store_backend} persistence gateway")
    return _gateway


async def close_gateway() -> None:
    """Close the gateway if one was created."""
    global _gateway
    if _gateway is not None:
        await _gateway.close()
        _gateway = None


def get_hierarchy_service(
    gateway: Annotated[PersistenceGateway, Depends(get_gateway)],
) -> HierarchyService:
    """
    Dependency factory for HierarchyService.
    
    Args:
        gateway: Persistence gateway (injected)
        
    Returns:
        HierarchyService instance
    """
    return HierarchyService(gateway=gateway)


# Type aliases for cleaner route signatures
HierarchyServiceDep = Annotated[HierarchyService, Depends(get_hierarchy_service)]
