"""
Fronius Solar.web Query API provider

Authenticates with the ``AccessKeyId`` and ``AccessKeyValue`` headers.
Source value references take the form ``/{systemId}/{deviceId}/{channel}``.
Historic data can only be requested one day at a time, so longer ranges are
read in consecutive windows.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pandas as pd

from ..core.domain import (ConfigKey, DataValue, Datum, DatumQueryResult, DatumStreamConfiguration,
                           IntegrationConfiguration, QueryFilter)
from ..core.http import KeyHeaderAuthorization
from .base import CloudProvider, page_query_range

logger = logging.getLogger(__name__)

BASE_URI = "https://api.solarweb.com"
LIST_SYSTEMS_PATH = "/swqapi/pvsystems"
LIST_DEVICES_PATH = "/swqapi/pvsystems/{system_id}/devices"
HISTORIC_DATA_PATH = "/swqapi/pvsystems/{system_id}/devices/{device_id}/histdata"

MAX_QUERY_TIME_RANGE = timedelta(hours=24)
MAX_PAGES = 7
TICK = timedelta(minutes=5)


def format_date(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class FroniusProvider(CloudProvider):
    """Fronius Solar.web cloud integration"""

    provider_id = "fronius"
    display_name = "Fronius"
    base_uri = BASE_URI
    code_prefix = "FRCI"
    required_settings = ("accessKeyId", "accessKeyValue")
    supported_placeholders = ("systemId", "deviceId")
    latest_window = timedelta(minutes=30)

    def authorization(self, authorization_manager):
        return KeyHeaderAuthorization({"AccessKeyId": "accessKeyId", "AccessKeyValue": "accessKeyValue"})

    def verify(self, config: IntegrationConfiguration):
        return self.executor.get("List systems", config, LIST_SYSTEMS_PATH)

    def data_values(self, integration_id: ConfigKey,
                    filters: Optional[Dict[str, Any]] = None) -> List[DataValue]:
        config = self.integration(integration_id)
        system_id = (filters or {}).get("systemId")
        values = []
        if system_id:
            response = self.executor.get("List devices", config, LIST_DEVICES_PATH.format(system_id=system_id))
            for device in (response.json() or {}).get("devices", []):
                did = str(device.get("deviceId"))
                name = (device.get("deviceName") or did).strip()
                meta = {k: device[k] for k in ("deviceType", "deviceManufacturer") if device.get(k)}
                values.append(DataValue([str(system_id), did], name, meta))
        else:
            response = self.executor.get("List systems", config, LIST_SYSTEMS_PATH)
            for system in (response.json() or {}).get("pvSystems", []):
                sid = str(system.get("pvSystemId"))
                meta = {k: system[k] for k in ("timeZone", "peakPower") if system.get(k) is not None}
                values.append(DataValue([sid], (system.get("name") or sid).strip(), meta))
        return sorted(values, key=lambda v: v.name)

    def datum(self, datum_stream: DatumStreamConfiguration,
              query_filter: QueryFilter) -> DatumQueryResult:
        config = self.integration(datum_stream.integration_key)
        start, end, next_filter = page_query_range(query_filter, MAX_QUERY_TIME_RANGE * MAX_PAGES, TICK)

        results: List[Datum] = []
        for plan in self.query_plans(datum_stream):
            system_id = plan.value("systemId")
            device_id = plan.value("deviceId")
            if not (system_id and device_id):
                logger.warning(f"Datum stream {datum_stream.key} reference {plan.reference} is incomplete")
                continue
            source_id = datum_stream.source_id_for(plan.reference)
            path = HISTORIC_DATA_PATH.format(system_id=system_id, device_id=device_id)
            window_start = start
            while window_start < end:
                window_end = min(window_start + MAX_QUERY_TIME_RANGE, end)
                response = self.executor.get("List device data", config, path,
                                             {"from": format_date(window_start), "to": format_date(window_end)})
                results.extend(parse_histdata(response.json(), source_id, plan.fields))
                window_start = window_end

        results.sort(key=lambda d: (d.timestamp, d.source_id))
        return DatumQueryResult(results, query_filter.with_range(start, end), next_filter)


def parse_histdata(json_data: Optional[Dict], source_id: str, channels: List[str]) -> List[Datum]:
    """Convert histdata entries to datum, keeping only the wanted channels"""
    if not json_data:
        return []
    result = []
    for entry in json_data.get("data", []):
        log_date = entry.get("logDateTime")
        if not log_date:
            continue
        samples = {}
        for channel in entry.get("channels", []):
            name = channel.get("channelName")
            if channels and name not in channels:
                continue
            if name and channel.get("value") is not None:
                samples[name] = channel["value"]
        if samples:
            ts = pd.Timestamp(log_date).tz_convert("UTC").to_pydatetime()
            result.append(Datum(source_id, ts, samples))
    return result
