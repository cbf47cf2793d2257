"""Service modules"""
from .dashboard import DashboardService
from .fanout import fan_out

__all__ = ["DashboardService", "fan_out"]
