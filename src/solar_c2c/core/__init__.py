"""
Core integration logic

This package contains the provider independent pieces of the integration:
- Domain model: integration, datum stream and control configurations, instructions
- Placeholder resolution and granularity selection for datum queries
- Settings validation and authorized request execution
- Instruction execution with audit events
"""

from .domain import (ControlConfiguration, DataValue, Datum, DatumQueryResult,
                     DatumStreamConfiguration, ErrorDetail, Instruction, InstructionState,
                     InstructionStatus, IntegrationConfiguration, QueryFilter, Result)
from .errors import (CloudIntegrationError, ConfigurationNotFoundError, InvalidQueryError,
                     RemoteServiceError, UnknownProviderError)
from .granularity import EnphaseGranularity, select_granularity
from .instructions import InstructionExecutor, SET_CONTROL_PARAMETER_TOPIC
from .placeholders import resolve_placeholder_sets

__all__ = [
    "ControlConfiguration", "DataValue", "Datum", "DatumQueryResult", "DatumStreamConfiguration",
    "ErrorDetail", "Instruction", "InstructionState", "InstructionStatus",
    "IntegrationConfiguration", "QueryFilter", "Result",
    "CloudIntegrationError", "ConfigurationNotFoundError", "InvalidQueryError",
    "RemoteServiceError", "UnknownProviderError",
    "EnphaseGranularity", "select_granularity",
    "InstructionExecutor", "SET_CONTROL_PARAMETER_TOPIC",
    "resolve_placeholder_sets",
]
