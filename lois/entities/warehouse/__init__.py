"""
Snowflake warehouse: connection wrapper and natural-language query service.
"""

from .service import WarehouseQueryService, apply_org_filter
from .snowflake import SnowflakeWarehouse

__all__ = ["SnowflakeWarehouse", "WarehouseQueryService", "apply_org_filter"]
