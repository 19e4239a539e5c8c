"""
SolarEdge Monitoring API (v1) provider

Authenticates with the ``X-API-Key`` header. Source value references take
the form ``/{siteId}/{deviceType}/{componentId}/{field}`` where the device
type is ``inv`` (inverter equipment telemetry, fields named as in the
telemetry, e.g. ``totalActivePower``) or ``met`` (site power details, the
component being the meter type such as ``Production`` and the field ``W``).

SolarEdge reports site local times, so streams may set ``timeZone``; the
sampling resolution comes from the ``resolution`` stream setting.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from ..core.domain import (ConfigKey, DataValue, Datum, DatumQueryResult, DatumStreamConfiguration,
                           IntegrationConfiguration, QueryFilter)
from ..core.granularity import SolarEdgeResolution
from ..core.http import KeyHeaderAuthorization
from .base import CloudProvider, page_query_range

logger = logging.getLogger(__name__)

BASE_URI = "https://monitoringapi.solaredge.com"
SITES_LIST_PATH = "/sites/list"
SITE_INVENTORY_PATH = "/site/{site_id}/inventory"
EQUIPMENT_DATA_PATH = "/equipment/{site_id}/{component_id}/data"
POWER_DETAILS_PATH = "/site/{site_id}/powerDetails"

INVERTER_DEVICE_TYPE = "inv"
METER_DEVICE_TYPE = "met"

RESOLUTION_SETTING = "resolution"
TIME_ZONE_SETTING = "timeZone"
DEFAULT_RESOLUTION = SolarEdgeResolution.FIFTEEN_MINUTE

MAX_QUERY_TIME_RANGE = timedelta(days=5)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class SolarEdgeProvider(CloudProvider):
    """SolarEdge cloud integration"""

    provider_id = "solaredge"
    display_name = "SolarEdge"
    base_uri = BASE_URI
    code_prefix = "SECI"
    required_settings = ("apiKey",)
    supported_placeholders = ("siteId", "deviceType", "componentId")

    def authorization(self, authorization_manager):
        return KeyHeaderAuthorization({"X-API-Key": "apiKey"})

    def verify(self, config: IntegrationConfiguration):
        return self.executor.get("List sites", config, SITES_LIST_PATH)

    def data_values(self, integration_id: ConfigKey,
                    filters: Optional[Dict[str, Any]] = None) -> List[DataValue]:
        config = self.integration(integration_id)
        site_id = (filters or {}).get("siteId")
        values = []
        if site_id:
            response = self.executor.get("List site inventory", config,
                                         SITE_INVENTORY_PATH.format(site_id=site_id))
            inventory = (response.json() or {}).get("Inventory", {})
            for inverter in inventory.get("inverters", []):
                sn = inverter.get("SN")
                if sn:
                    values.append(DataValue([str(site_id), INVERTER_DEVICE_TYPE, sn],
                                            inverter.get("name") or sn, {"model": inverter.get("model")}))
            for meter in inventory.get("meters", []):
                meter_type = meter.get("type")
                if meter_type:
                    values.append(DataValue([str(site_id), METER_DEVICE_TYPE, meter_type],
                                            meter.get("name") or meter_type))
        else:
            response = self.executor.get("List sites", config, SITES_LIST_PATH)
            for site in (response.json() or {}).get("sites", {}).get("site", []):
                sid = str(site.get("id"))
                meta = {}
                tz = (site.get("location") or {}).get("timeZone")
                if tz:
                    meta[TIME_ZONE_SETTING] = tz
                values.append(DataValue([sid], site.get("name") or sid, meta))
        return sorted(values, key=lambda v: v.name)

    def datum(self, datum_stream: DatumStreamConfiguration,
              query_filter: QueryFilter) -> DatumQueryResult:
        config = self.integration(datum_stream.integration_key)
        resolution = SolarEdgeResolution.from_key(datum_stream.service_property(RESOLUTION_SETTING),
                                                  DEFAULT_RESOLUTION)
        zone = datum_stream.service_property(TIME_ZONE_SETTING, "UTC")
        start, end, next_filter = page_query_range(query_filter, MAX_QUERY_TIME_RANGE, resolution.tick)
        date_params = {"startTime": format_local(start, zone), "endTime": format_local(end, zone)}

        results: List[Datum] = []
        for plan in self.query_plans(datum_stream):
            site_id = plan.value("siteId")
            device_type = plan.value("deviceType")
            component_id = plan.value("componentId")
            if not (site_id and component_id):
                logger.warning(f"Datum stream {datum_stream.key} reference {plan.reference} is incomplete")
                continue
            source_id = datum_stream.source_id_for(plan.reference)
            if device_type == METER_DEVICE_TYPE:
                params = dict(date_params, timeUnit=resolution.key, meters=component_id)
                response = self.executor.get("List meter power data", config,
                                             POWER_DETAILS_PATH.format(site_id=site_id), params)
                results.extend(parse_power_details(response.json(), source_id, component_id, zone))
            else:
                response = self.executor.get(
                    "List inverter data", config,
                    EQUIPMENT_DATA_PATH.format(site_id=site_id, component_id=component_id), date_params)
                results.extend(parse_telemetries(response.json(), source_id, plan.fields, zone))

        results.sort(key=lambda d: (d.timestamp, d.source_id))
        return DatumQueryResult(results, query_filter.with_range(start, end), next_filter)


def format_local(ts: datetime, zone: str) -> str:
    return pd.Timestamp(ts).tz_convert(zone).strftime(TIMESTAMP_FORMAT)


def parse_local(value: str, zone: str) -> datetime:
    return pd.Timestamp(value).tz_localize(zone).tz_convert("UTC").to_pydatetime()


def parse_telemetries(json_data: Optional[Dict], source_id: str, fields: List[str], zone: str) -> List[Datum]:
    """Inverter telemetry entries to datum; all numeric top-level fields when none are named"""
    if not json_data:
        return []
    result = []
    for telem in (json_data.get("data") or {}).get("telemetries", []):
        date_val = telem.get("date")
        if not date_val:
            continue
        if fields:
            samples = {f: telem[f] for f in fields if telem.get(f) is not None}
        else:
            samples = {k: v for k, v in telem.items()
                       if isinstance(v, (int, float)) and not isinstance(v, bool)}
        if samples:
            result.append(Datum(source_id, parse_local(date_val, zone), samples))
    return result


def parse_power_details(json_data: Optional[Dict], source_id: str, meter_type: str, zone: str) -> List[Datum]:
    if not json_data:
        return []
    result = []
    for meter in (json_data.get("powerDetails") or {}).get("meters", []):
        if meter.get("type") != meter_type:
            continue
        for value in meter.get("values", []):
            if value.get("date") and value.get("value") is not None:
                result.append(Datum(source_id, parse_local(value["date"], zone), {"W": value["value"]}))
    return result
