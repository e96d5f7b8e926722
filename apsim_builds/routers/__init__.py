"""
API routers package.
"""
from apsim_builds.routers import nextgen, oldapsim

__all__ = ["nextgen", "oldapsim"]
