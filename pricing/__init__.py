from .cost_engine import CostEngine
from .rate_table import RateTable, RateTableError, default_rate_table

__all__ = ["CostEngine", "RateTable", "RateTableError", "default_rate_table"]
