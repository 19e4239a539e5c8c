"""
Enphase Energy API v4 provider

Authenticates with an OAuth bearer token plus the application API key as the
``key`` query parameter. Datum are read from system level telemetry:

- ``/{systemId}/inv/{field}`` microinverter production (W, Wh, DevicesReporting)
- ``/{systemId}/met/{field}`` revenue grade meter readings (Wh, DevicesReporting)

Usage:
    provider = EnphaseProvider(integrations, transport, authorization_manager)
    result = provider.datum(stream, QueryFilter(start, end))
    df = result.to_dataframe()
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..core.domain import (ConfigKey, DataValue, Datum, DatumQueryResult, DatumStreamConfiguration,
                           IntegrationConfiguration, QueryFilter)
from ..core.granularity import EnphaseGranularity
from ..core.http import OAuthAuthorization
from .base import CloudProvider, epoch_seconds, page_query_range

logger = logging.getLogger(__name__)

BASE_URI = "https://api.enphaseenergy.com"
LIST_SYSTEMS_PATH = "/api/v4/systems"
SYSTEM_DEVICES_PATH = "/api/v4/systems/{system_id}/devices"
INVERTER_TELEMETRY_PATH = "/api/v4/systems/{system_id}/telemetry/production_micro"
RGM_TELEMETRY_PATH = "/api/v4/systems/{system_id}/rgm_stats"

API_KEY_SETTING = "apiKey"
API_KEY_PARAM = "key"

INVERTER_DEVICE_TYPE = "inv"
METER_DEVICE_TYPE = "met"

MAX_QUERY_TIME_RANGE = timedelta(days=7)

# field name -> interval property
INVERTER_FIELDS = {"W": "powr", "Wh": "enwh", "DevicesReporting": "devices_reporting"}
METER_FIELDS = {"Wh": "wh_del", "DevicesReporting": "devices_reporting"}


class EnphaseProvider(CloudProvider):
    """Enphase Energy cloud integration"""

    provider_id = "enphase"
    display_name = "Enphase"
    base_uri = BASE_URI
    code_prefix = "EPCI"
    required_settings = ("apiKey", "oauthClientId", "oauthClientSecret",
                         "oauthAccessToken", "oauthRefreshToken")
    supported_placeholders = ("systemId", "deviceType")

    def authorization(self, authorization_manager):
        return OAuthAuthorization(authorization_manager)

    def _key_params(self, config: IntegrationConfiguration, **params) -> Dict[str, Any]:
        result = {API_KEY_PARAM: config.service_property(API_KEY_SETTING)}
        result.update(params)
        return result

    def verify(self, config: IntegrationConfiguration):
        return self.executor.get("List systems", config, LIST_SYSTEMS_PATH, self._key_params(config))

    def data_values(self, integration_id: ConfigKey,
                    filters: Optional[Dict[str, Any]] = None) -> List[DataValue]:
        """
        List systems, or the device types of one system

        Args:
            integration_id: Integration key
            filters: Optional ``systemId`` filter

        Returns:
            Data values sorted by name
        """
        config = self.integration(integration_id)
        system_id = (filters or {}).get("systemId")
        if system_id:
            response = self.executor.get("List system devices", config,
                                         SYSTEM_DEVICES_PATH.format(system_id=system_id),
                                         self._key_params(config))
            return self._parse_devices(response.json() or {}, str(system_id))

        response = self.executor.get("List systems", config, LIST_SYSTEMS_PATH, self._key_params(config))
        values = []
        for system in (response.json() or {}).get("systems", []):
            sid = str(system.get("system_id"))
            meta = {k: system[k] for k in ("timezone", "status") if system.get(k) is not None}
            values.append(DataValue([sid], system.get("name") or sid, meta))
        return sorted(values, key=lambda v: v.name)

    def _parse_devices(self, json_data: Dict, system_id: str) -> List[DataValue]:
        devices = json_data.get("devices", {})
        values = []
        for device_type, key, name, fields in (
                (INVERTER_DEVICE_TYPE, "micros", "Inverters", INVERTER_FIELDS),
                (METER_DEVICE_TYPE, "meters", "Meters", METER_FIELDS)):
            items = devices.get(key) or []
            if not items:
                continue
            children = [DataValue([system_id, device_type, f], f) for f in fields]
            meta = {"serialNumbers": [d.get("serial_number") for d in items if d.get("serial_number")]}
            values.append(DataValue([system_id, device_type], name, meta, children))
        return sorted(values, key=lambda v: v.name)

    def datum(self, datum_stream: DatumStreamConfiguration,
              query_filter: QueryFilter) -> DatumQueryResult:
        config = self.integration(datum_stream.integration_key)
        start, end, next_filter = page_query_range(
            query_filter, MAX_QUERY_TIME_RANGE, EnphaseGranularity.FIFTEEN_MINUTE.tick)
        granularity = EnphaseGranularity.for_query_date_range(query_filter.start_date, query_filter.end_date)
        used_filter = query_filter.with_range(start, end)

        results: List[Datum] = []
        for plan in self.query_plans(datum_stream):
            system_id = plan.value("systemId")
            device_type = plan.value("deviceType") or INVERTER_DEVICE_TYPE
            if not system_id:
                logger.warning(f"Datum stream {datum_stream.key} reference {plan.reference} has no system id")
                continue
            source_id = datum_stream.source_id_for(plan.reference)
            if device_type == METER_DEVICE_TYPE:
                response = self.executor.get(
                    "List system meter data", config, RGM_TELEMETRY_PATH.format(system_id=system_id),
                    self._key_params(config, start_at=epoch_seconds(start), end_at=epoch_seconds(end)))
                results.extend(parse_intervals(response.json(), source_id, plan.fields or list(METER_FIELDS),
                                               METER_FIELDS, end))
            else:
                response = self.executor.get(
                    "List system inverter data", config, INVERTER_TELEMETRY_PATH.format(system_id=system_id),
                    self._key_params(config, start_at=epoch_seconds(start), granularity=granularity.key))
                results.extend(parse_intervals(response.json(), source_id,
                                               plan.fields or list(INVERTER_FIELDS), INVERTER_FIELDS, end))

        results.sort(key=lambda d: (d.timestamp, d.source_id))
        logger.info(f"Enphase datum stream {datum_stream.key}: {len(results)} datum "
                    f"from {start} to {end} at {granularity.key}")
        return DatumQueryResult(results, used_filter, next_filter)


def parse_intervals(json_data: Optional[Dict], source_id: str, fields: List[str],
                    field_map: Dict[str, str], end: datetime) -> List[Datum]:
    """
    Convert telemetry intervals to datum

    Intervals are keyed by their ``end_at`` epoch second; those after the
    query end are dropped because the inverter endpoint has no end parameter.
    """
    if not json_data:
        return []
    end_ts = epoch_seconds(end)
    result = []
    for interval in json_data.get("intervals", []):
        ts = interval.get("end_at") or 0
        if ts < 1:
            continue
        if ts > end_ts:
            break
        samples = {}
        for f in fields:
            prop = field_map.get(f)
            if prop and interval.get(prop) is not None:
                samples[f] = interval[prop]
        if samples:
            result.append(Datum(source_id, datetime.fromtimestamp(ts, tz=timezone.utc), samples))
    return result
