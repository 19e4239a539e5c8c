"""
Simulated solar provider

Generates realistic production datum without any remote service, using a
seasonal, bell shaped daily curve with cloud variability for a ~7.8kW
system, and simulates control writes by remembering the last value set on
each control. Output is deterministic for a given reference, range and
granularity.

Source value references take the form ``/{siteId}/{deviceId}/{field}`` with
fields ``W`` (average power) and ``Wh`` (energy per interval).
"""

import logging
import zlib
from datetime import timedelta
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from ..core.domain import (ConfigKey, ControlConfiguration, DataValue, Datum, DatumQueryResult,
                           DatumStreamConfiguration, IntegrationConfiguration, QueryFilter)
from ..core.granularity import MockGranularity
from ..core.instructions import SET_CONTROL_PARAMETER_TOPIC
from .base import CloudProvider, page_query_range, setting_list

logger = logging.getLogger(__name__)

MAX_PRODUCTION_W = 7800
PEAK_TIME = 12.5
CURVE_WIDTH = 4.5
SUNRISE_HOUR = 6
SUNSET_HOUR = 19

CAPACITY_SETTING = "capacity"
GRANULARITY_SETTING = "granularity"
SITE_IDS_SETTING = "siteIds"

FIELDS = ("W", "Wh")
MAX_QUERY_TIME_RANGE = timedelta(days=7)


def solar_production(timestamps: pd.DatetimeIndex, capacity: float,
                     rng: np.random.Generator) -> np.ndarray:
    """
    Average power for each timestamp

    Args:
        timestamps: Interval start times
        capacity: Peak power in W
        rng: Random source for weather variability

    Returns:
        Array of power values in W, zero at night
    """
    hours = np.asarray(timestamps.hour + timestamps.minute / 60.0, dtype=float)
    day_of_year = np.asarray(timestamps.dayofyear, dtype=float)

    # peak around the summer solstice
    seasonal = 0.7 + 0.3 * np.cos(2 * np.pi * (day_of_year - 172) / 365)
    daily = np.exp(-((hours - PEAK_TIME) ** 2) / (2 * CURVE_WIDTH ** 2))

    weather = rng.uniform(0.6, 1.0, len(hours))
    cloudy = rng.random(len(hours)) < 0.15
    weather[cloudy] *= rng.uniform(0.1, 0.4, int(cloudy.sum()))
    noise = rng.uniform(0.95, 1.05, len(hours))

    power = capacity * seasonal * daily * weather * noise
    power[(hours < SUNRISE_HOUR) | (hours >= SUNSET_HOUR)] = 0
    return np.maximum(power, 0)


class MockProvider(CloudProvider):
    """Simulated cloud integration"""

    provider_id = "mock"
    display_name = "Mock"
    code_prefix = "MOCK"
    supported_placeholders = ("siteId", "deviceId")
    latest_window = timedelta(hours=1)

    def __init__(self, *args, **kwargs):
        self.control_values: Dict[ConfigKey, Any] = {}
        super().__init__(*args, **kwargs)

    def authorization(self, authorization_manager):
        return None

    def verify(self, config: IntegrationConfiguration):
        return None

    def instruction_handlers(self):
        return {SET_CONTROL_PARAMETER_TOPIC: self.set_control_parameter}

    def set_control_parameter(self, integration: IntegrationConfiguration,
                              control: ControlConfiguration, value: Any) -> Dict[str, Any]:
        """Simulate writing a numeric value to the control's point"""
        number = float(value)
        self.control_values[control.key] = number
        logger.info(f"Set {integration.provider_id} control {control.control_reference} to {number}")
        return {"value": number, "reference": control.control_reference}

    def data_values(self, integration_id: ConfigKey,
                    filters: Optional[Dict[str, Any]] = None) -> List[DataValue]:
        config = self.integration(integration_id)
        site_id = (filters or {}).get("siteId")
        if site_id:
            device_ids = [f"inverter-{i}" for i in (1, 2)]
            return [DataValue([str(site_id), d], d, children=[DataValue([str(site_id), d, f], f) for f in FIELDS])
                    for d in device_ids]
        site_ids = setting_list(config.service_property(SITE_IDS_SETTING)) or ["site-1"]
        return sorted((DataValue([s], s) for s in site_ids), key=lambda v: v.name)

    def datum(self, datum_stream: DatumStreamConfiguration,
              query_filter: QueryFilter) -> DatumQueryResult:
        self.integration(datum_stream.integration_key)
        start, end, next_filter = page_query_range(query_filter, MAX_QUERY_TIME_RANGE, timedelta(minutes=1))
        granularity = MockGranularity.from_key(datum_stream.service_property(GRANULARITY_SETTING)) \
            or MockGranularity.for_query_date_range(start, end)
        start = granularity.tick_start(start)
        end = granularity.tick_start(end)
        capacity = float(datum_stream.service_property(CAPACITY_SETTING, MAX_PRODUCTION_W))
        timestamps = pd.date_range(start, end, freq=granularity.tick, inclusive="left")
        interval_hours = granularity.tick.total_seconds() / 3600

        results: List[Datum] = []
        for plan in self.query_plans(datum_stream):
            fields = [f for f in plan.fields if f in FIELDS] or list(FIELDS)
            seed = zlib.crc32(f"{plan.reference}|{start.isoformat()}|{granularity.key}".encode())
            power = solar_production(timestamps, capacity, np.random.default_rng(seed))
            source_id = datum_stream.source_id_for(plan.reference)
            for ts, w in zip(timestamps, power):
                samples = {}
                if "W" in fields:
                    samples["W"] = round(float(w), 1)
                if "Wh" in fields:
                    samples["Wh"] = round(float(w) * interval_hours, 1)
                results.append(Datum(source_id, ts.to_pydatetime(), samples))

        results.sort(key=lambda d: (d.timestamp, d.source_id))
        return DatumQueryResult(results, query_filter.with_range(start, end), next_filter)
