from .catalog_service import CatalogService
from .circulation_service import CirculationService

__all__ = ['CatalogService', 'CirculationService']
