"""
Domain model for cloud-to-cloud solar integrations

Configuration records (integration, datum stream, control), control
instructions and the normalized datum results returned by providers.

Usage:
    integration = IntegrationConfiguration(1, 2, "enphase", {"apiKey": "..."})
    stream = DatumStreamConfiguration(1, 10, 2, source_value_refs=["/123/abc"])
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

# (user_id, config_id)
ConfigKey = Tuple[int, int]

SYSTEM_IDENTIFIER_PREFIX = "c2c-i9n"


def parse_system_identifier(identifier: str) -> Optional[ConfigKey]:
    """Recover the (user_id, config_id) key from a system identifier"""
    parts = identifier.split(":") if identifier else []
    if len(parts) != 3 or parts[0] != SYSTEM_IDENTIFIER_PREFIX:
        return None
    try:
        return (int(parts[1]), int(parts[2]))
    except ValueError:
        return None


@dataclass
class IntegrationConfiguration:
    """Connection to one provider account, with its auth settings"""
    user_id: int
    config_id: int
    provider_id: str
    service_properties: Dict[str, Any] = field(default_factory=dict)
    name: Optional[str] = None
    enabled: bool = True

    @property
    def key(self) -> ConfigKey:
        return (self.user_id, self.config_id)

    @property
    def system_identifier(self) -> str:
        """Stable OAuth client-registration id derived from the key"""
        return f"{SYSTEM_IDENTIFIER_PREFIX}:{self.user_id}:{self.config_id}"

    def service_property(self, key: str, default: Any = None) -> Any:
        value = self.service_properties.get(key) if self.service_properties else None
        return default if value is None else value


@dataclass
class DatumStreamConfiguration:
    """One logical datum stream drawn from an integration"""
    user_id: int
    config_id: int
    integration_id: int
    source_value_refs: List[str] = field(default_factory=list)
    placeholders: Dict[str, Any] = field(default_factory=dict)
    source_id_map: Dict[str, str] = field(default_factory=dict)
    service_properties: Dict[str, Any] = field(default_factory=dict)
    name: Optional[str] = None

    @property
    def key(self) -> ConfigKey:
        return (self.user_id, self.config_id)

    @property
    def integration_key(self) -> ConfigKey:
        return (self.user_id, self.integration_id)

    def service_property(self, key: str, default: Any = None) -> Any:
        value = self.service_properties.get(key) if self.service_properties else None
        return default if value is None else value

    def source_id_for(self, reference: str) -> str:
        """
        Resolve the datum source id for a source value reference

        Mapped references use the configured name; others fall back to the
        reference path itself, without the leading separator.
        """
        if self.source_id_map and reference in self.source_id_map:
            return self.source_id_map[reference]
        return reference.lstrip("/") or f"c2c/{self.config_id}"


@dataclass
class ControlConfiguration:
    """A single controllable point exposed by an integration"""
    user_id: int
    config_id: int
    integration_id: int
    control_id: str
    control_reference: str
    node_id: Optional[int] = None
    enabled: bool = True

    @property
    def key(self) -> ConfigKey:
        return (self.user_id, self.config_id)

    @property
    def integration_key(self) -> ConfigKey:
        return (self.user_id, self.integration_id)


class InstructionState(Enum):
    """Instruction lifecycle states"""
    QUEUED = "Queued"
    EXECUTING = "Executing"
    COMPLETED = "Completed"
    DECLINED = "Declined"


@dataclass
class Instruction:
    """Directive to change the state of a controllable point"""
    instruction_id: int
    topic: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    state: InstructionState = InstructionState.QUEUED
    result_parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.parameters is None:
            self.parameters = {}
        if self.result_parameters is None:
            self.result_parameters = {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize as a nested string-keyed mapping"""
        data: Dict[str, Any] = {
            "id": self.instruction_id,
            "topic": self.topic,
            "state": self.state.value,
            "parameters": dict(self.parameters or {}),
        }
        if self.result_parameters:
            data["resultParameters"] = dict(self.result_parameters)
        return data


@dataclass
class InstructionStatus:
    """Outcome of one instruction execution"""
    instruction_id: int
    state: InstructionState
    status_date: datetime
    result_parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ErrorDetail:
    """A single field-level problem"""
    location: str
    rejected_value: Any
    message: str


@dataclass
class Result:
    """Outcome of a validation request"""
    success: bool
    code: Optional[str] = None
    message: Optional[str] = None
    errors: List[ErrorDetail] = field(default_factory=list)

    @classmethod
    def ok(cls) -> "Result":
        return cls(success=True)

    @classmethod
    def error(cls, code: str, message: str,
              errors: Optional[List[ErrorDetail]] = None) -> "Result":
        return cls(success=False, code=code, message=message, errors=list(errors or []))


@dataclass
class DataValue:
    """Node in a provider's browsable metadata hierarchy"""
    identifiers: List[str]
    name: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    children: List["DataValue"] = field(default_factory=list)

    @property
    def reference(self) -> str:
        return "/" + "/".join(str(i) for i in self.identifiers)


@dataclass
class Datum:
    """Normalized timestamped measurement"""
    source_id: str
    timestamp: datetime
    samples: Dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryFilter:
    """Date range and extra parameters for a datum query"""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def with_range(self, start_date: datetime, end_date: datetime) -> "QueryFilter":
        return QueryFilter(start_date, end_date, dict(self.parameters))


@dataclass
class DatumQueryResult:
    """Datum returned by a query, with the filter for the next page if any"""
    results: List[Datum] = field(default_factory=list)
    used_filter: Optional[QueryFilter] = None
    next_filter: Optional[QueryFilter] = None

    def __len__(self) -> int:
        return len(self.results)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Flatten the results into a DataFrame

        Returns:
            DataFrame indexed by timestamp with a source_id column and one
            column per sample property
        """
        if not self.results:
            return pd.DataFrame(columns=["source_id"])

        rows = []
        for d in self.results:
            row = {"timestamp": d.timestamp, "source_id": d.source_id}
            row.update(d.samples)
            rows.append(row)

        df = pd.DataFrame(rows)
        df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
        return df.set_index("timestamp").sort_index()
