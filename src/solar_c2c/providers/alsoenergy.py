"""
AlsoEnergy PowerTrack API provider

Uses OAuth bearer tokens for the account's username and password. Source
value references take the form ``/{siteId}/{hardwareId}/{field}[/{function}]``
where the function is a bin aggregate such as ``Avg`` (the default),
``Last`` or ``Diff``.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

import pandas as pd

from ..core.domain import (ConfigKey, DataValue, Datum, DatumQueryResult, DatumStreamConfiguration,
                           IntegrationConfiguration, QueryFilter)
from ..core.granularity import AlsoEnergyGranularity
from ..core.http import OAuthAuthorization
from .base import CloudProvider, page_query_range

logger = logging.getLogger(__name__)

BASE_URI = "https://api.alsoenergy.com"
LIST_SITES_PATH = "/Sites"
SITE_HARDWARE_PATH = "/sites/{site_id}/hardware"
BIN_DATA_PATH = "/v2/data/bindata"

GRANULARITY_SETTING = "granularity"
TIME_ZONE_SETTING = "tz"
DEFAULT_GRANULARITY = AlsoEnergyGranularity.RAW
DEFAULT_FUNCTION = "Avg"

MAX_QUERY_TIME_RANGE = timedelta(days=7)

DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


class AlsoEnergyProvider(CloudProvider):
    """AlsoEnergy cloud integration"""

    provider_id = "alsoenergy"
    display_name = "AlsoEnergy"
    base_uri = BASE_URI
    code_prefix = "AECI"
    required_settings = ("username", "password")
    supported_placeholders = ("siteId", "hardwareId")

    def authorization(self, authorization_manager):
        return OAuthAuthorization(authorization_manager)

    def verify(self, config: IntegrationConfiguration):
        return self.executor.get("List sites", config, LIST_SITES_PATH)

    def data_values(self, integration_id: ConfigKey,
                    filters: Optional[Dict[str, Any]] = None) -> List[DataValue]:
        config = self.integration(integration_id)
        site_id = (filters or {}).get("siteId")
        values = []
        if site_id:
            response = self.executor.get("List site hardware", config,
                                         SITE_HARDWARE_PATH.format(site_id=site_id),
                                         {"includeArchivedFields": "true"})
            for hw in (response.json() or {}).get("hardware", []):
                hid = str(hw.get("id"))
                ids = [str(site_id), hid]
                children = [DataValue(ids + [f], f) for f in hw.get("fieldsArchived") or []]
                meta = {"functionCode": hw["functionCode"]} if hw.get("functionCode") else {}
                values.append(DataValue(ids, hw.get("name") or hid, meta, children))
        else:
            response = self.executor.get("List sites", config, LIST_SITES_PATH)
            for site in (response.json() or {}).get("items", []):
                sid = str(site.get("siteId"))
                values.append(DataValue([sid], site.get("siteName") or sid))
        return sorted(values, key=lambda v: v.name)

    def datum(self, datum_stream: DatumStreamConfiguration,
              query_filter: QueryFilter) -> DatumQueryResult:
        config = self.integration(datum_stream.integration_key)
        granularity = AlsoEnergyGranularity.from_key(datum_stream.service_property(GRANULARITY_SETTING),
                                                     DEFAULT_GRANULARITY)
        zone = datum_stream.service_property(TIME_ZONE_SETTING, "UTC")
        start, end, next_filter = page_query_range(query_filter, MAX_QUERY_TIME_RANGE, granularity.tick)
        params = {
            "from": pd.Timestamp(start).tz_convert(zone).strftime(DATE_FORMAT),
            "to": pd.Timestamp(end).tz_convert(zone).strftime(DATE_FORMAT),
            "binSizes": granularity.key,
            "tz": zone,
        }

        results: List[Datum] = []
        for plan in self.query_plans(datum_stream):
            site_id = plan.value("siteId")
            hardware_id = plan.value("hardwareId")
            if not (site_id and hardware_id and plan.fields):
                logger.warning(f"Datum stream {datum_stream.key} reference {plan.reference} is incomplete")
                continue
            refs = [split_field(f) for f in plan.fields]
            body = [{"siteId": site_id, "hardwareId": hardware_id, "function": fn, "fieldName": name}
                    for name, fn in refs]
            response = self.executor.request("List data for hardware", config, "POST", BIN_DATA_PATH,
                                             params=params, body=body)
            source_id = datum_stream.source_id_for(plan.reference)
            results.extend(parse_bin_data(response.json(), source_id, [name for name, _ in refs]))

        results.sort(key=lambda d: (d.timestamp, d.source_id))
        return DatumQueryResult(results, query_filter.with_range(start, end), next_filter)


def split_field(field: str):
    """``KW/Last`` to ("KW", "Last"); the function defaults to Avg"""
    name, _, fn = field.partition("/")
    return name, fn or DEFAULT_FUNCTION


def parse_bin_data(json_data: Optional[Dict], source_id: str, names: List[str]) -> List[Datum]:
    """Bin items carry one value per requested field, in request order"""
    if not json_data:
        return []
    result = []
    for item in json_data.get("items", []):
        ts = item.get("timestamp")
        data = item.get("data") or []
        if not isinstance(ts, str) or len(data) != len(names):
            continue
        samples = {n: v for n, v in zip(names, data) if v is not None}
        if samples:
            result.append(Datum(source_id, pd.Timestamp(ts).tz_convert("UTC").to_pydatetime(), samples))
    return result
