"""
Cloud provider capability interface

Every provider adapter implements the same small set of operations (validate,
data_values, datum, execute_instruction) and is selected at runtime by
provider id from the ProviderRegistry. Shared behaviour is composed from the
core helpers rather than inherited through deeper class chains.
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..core.clock import SystemClock
from ..core.domain import (ConfigKey, DataValue, DatumQueryResult, DatumStreamConfiguration,
                           Instruction, InstructionStatus, IntegrationConfiguration, QueryFilter,
                           Result)
from ..core.errors import ConfigurationNotFoundError, InvalidQueryError
from ..core.events import LoggingEventAppender
from ..core.granularity import floor_time
from ..core.http import AuthorizedRequestExecutor, RequestsTransport, SettingsTokenAuthorizationManager
from ..core.instructions import InstructionExecutor, InstructionHandler
from ..core.placeholders import reference_segments, resolve_placeholder_sets
from ..core.stores import InMemoryConfigurationStore
from ..core.validation import SettingsValidator

logger = logging.getLogger(__name__)

FIELD_NAMES_SETTING = "fieldNames"

_TEMPLATE_PATTERN = re.compile(r"\{(\w+)\}")


def expand_template(text: str, placeholders: Optional[Mapping[str, Any]]) -> str:
    """Replace ``{name}`` tokens with placeholder values, leaving unknown tokens"""
    if not placeholders:
        return text
    return _TEMPLATE_PATTERN.sub(
        lambda m: str(placeholders[m.group(1)]) if m.group(1) in placeholders else m.group(0), text)


def setting_list(value: Any) -> List[str]:
    """List setting that may arrive as a comma separated string, as from a .env file"""
    if value is None:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(v) for v in value]


def epoch_seconds(ts: datetime) -> int:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return int(ts.timestamp())


@dataclass
class QueryPlan:
    """One provider query: placeholder values plus the fields to read"""
    placeholders: Dict[str, Any]
    reference: str
    fields: List[str] = field(default_factory=list)

    def value(self, name: str) -> Optional[str]:
        v = self.placeholders.get(name)
        return None if v is None else str(v)


def page_query_range(query_filter: QueryFilter, max_range: timedelta,
                     tick: timedelta) -> Tuple[datetime, datetime, Optional[QueryFilter]]:
    """
    Limit a query to the provider's maximum range

    Args:
        query_filter: Requested range
        max_range: Longest range one query may cover
        tick: Bucket size to align start and end to

    Returns:
        Tuple of (start, end, next_filter); next_filter covers the following
        page when the range was truncated, otherwise None
    """
    if query_filter is None or query_filter.start_date is None or query_filter.end_date is None:
        raise InvalidQueryError("A start and end date are required")
    start = floor_time(query_filter.start_date, tick)
    end = floor_time(query_filter.end_date, tick)
    if end < start:
        raise InvalidQueryError("The end date must not be before the start date")

    next_filter = None
    if end - start > max_range:
        next_end = min(floor_time(start + max_range * 2, tick), end)
        end = floor_time(start + max_range, tick)
        next_filter = query_filter.with_range(end, next_end)
    return start, end, next_filter


class CloudProvider(ABC):
    """
    Base for provider adapters

    Subclasses declare their identity and settings as class attributes and
    implement verify, data_values and datum.
    """

    provider_id: str = ""
    display_name: str = ""
    base_uri: Optional[str] = None
    code_prefix: str = ""
    required_settings: Sequence[str] = ()
    supported_placeholders: Sequence[str] = ()
    latest_window = timedelta(minutes=15)

    def __init__(self, integration_store=None, transport=None, authorization_manager=None,
                 control_store=None, event_appender=None, clock=None):
        """
        Args:
            integration_store: Integration configuration lookup
            transport: HTTP transport, defaults to a requests Session transport
            authorization_manager: OAuth credentials source for OAuth providers
            control_store: Control configuration lookup
            event_appender: Audit event destination
            clock: Source of the current time
        """
        self.integration_store = integration_store if integration_store is not None \
            else InMemoryConfigurationStore()
        self.control_store = control_store if control_store is not None else InMemoryConfigurationStore()
        self.clock = clock or SystemClock()
        self.executor = None
        if self.base_uri:
            if authorization_manager is None:
                authorization_manager = SettingsTokenAuthorizationManager(self.integration_store)
            self.executor = AuthorizedRequestExecutor(
                transport or RequestsTransport(), self.authorization(authorization_manager), self.base_uri)
        self.validator = SettingsValidator(self.code_prefix, self.required_settings, self.verify)
        self.instructions = InstructionExecutor(
            self.control_store, self.integration_store, event_appender or LoggingEventAppender(),
            self.instruction_handlers(), self.clock)

    @abstractmethod
    def authorization(self, authorization_manager):
        """Credential strategy used by the request executor, None for providers without a base_uri"""

    @abstractmethod
    def verify(self, config: IntegrationConfiguration) -> Any:
        """Perform the single request that proves the settings work"""

    @abstractmethod
    def data_values(self, integration_id: ConfigKey,
                    filters: Optional[Dict[str, Any]] = None) -> List[DataValue]:
        """Browse provider metadata"""

    @abstractmethod
    def datum(self, datum_stream: DatumStreamConfiguration,
              query_filter: QueryFilter) -> DatumQueryResult:
        """Query datum for a stream over a date range"""

    def instruction_handlers(self) -> Dict[str, InstructionHandler]:
        return {}

    @property
    def supported_topics(self) -> List[str]:
        return self.instructions.supported_topics

    def validate(self, config: IntegrationConfiguration, locale: Optional[str] = None) -> Result:
        return self.validator.validate(config, locale)

    def execute_instruction(self, control_id: ConfigKey, instruction: Instruction) -> InstructionStatus:
        return self.instructions.execute_instruction(control_id, instruction)

    def latest_datum(self, datum_stream: DatumStreamConfiguration) -> DatumQueryResult:
        """Query the most recent window ending now"""
        end = self.clock.now()
        return self.datum(datum_stream, QueryFilter(end - self.latest_window, end))

    def integration(self, integration_id: ConfigKey) -> IntegrationConfiguration:
        config = self.integration_store.get(integration_id)
        if config is None:
            raise ConfigurationNotFoundError("Integration", integration_id)
        return config

    def resolve_placeholders(self, datum_stream: DatumStreamConfiguration) -> List[Dict[str, Any]]:
        refs = [expand_template(r, datum_stream.placeholders) for r in datum_stream.source_value_refs or []]
        return resolve_placeholder_sets(self.supported_placeholders, datum_stream.placeholders, refs)

    def query_plans(self, datum_stream: DatumStreamConfiguration) -> List[QueryPlan]:
        """
        Group the stream's references into provider queries

        References sharing the same placeholder values become one plan; any
        segments after the placeholder segments name the field to read. With
        no references, the stream's placeholders and ``fieldNames`` setting
        form a single plan.
        """
        n = len(self.supported_placeholders)
        refs = [expand_template(r, datum_stream.placeholders) for r in datum_stream.source_value_refs or []]
        placeholder_sets = self.resolve_placeholders(datum_stream)

        plans: Dict[Tuple, QueryPlan] = {}
        if refs:
            pairs = [(p, "/".join(reference_segments(r)[n:]) or None) for p, r in zip(placeholder_sets, refs)]
        else:
            names = setting_list(datum_stream.service_property(FIELD_NAMES_SETTING))
            pairs = [(placeholder_sets[0], name) for name in names] or [(placeholder_sets[0], None)]

        for placeholders, field_name in pairs:
            values = tuple(placeholders.get(name) for name in self.supported_placeholders)
            plan = plans.get(values)
            if plan is None:
                reference = "/" + "/".join(str(v) for v in values if v is not None)
                plan = plans[values] = QueryPlan(placeholders, reference)
            if field_name and field_name not in plan.fields:
                plan.fields.append(field_name)
        return list(plans.values())
