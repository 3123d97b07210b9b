"""
Flow normalization stage services.
"""

from flowgen.services.flow_service import FlowService

__all__ = ["FlowService"]
