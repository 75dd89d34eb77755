"""Ports reserved by the Alluxio runtimes already rendered into the cluster."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

import yaml

PROPERTIES_TO_CHECK = (
    "alluxio.master.rpc.port",
    "alluxio.master.web.port",
    "alluxio.worker.rpc.port",
    "alluxio.worker.web.port",
    "alluxio.job.master.rpc.port",
    "alluxio.job.master.web.port",
    "alluxio.job.worker.rpc.port",
    "alluxio.job.worker.web.port",
    "alluxio.job.worker.data.port",
    "alluxio.proxy.web.port",
    "alluxio.master.embedded.journal.port",
    "alluxio.job.master.embedded.journal.port",
)

_INTEGER = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class RuntimeRef:
    """The accelerating runtime bound to a dataset."""

    name: str
    namespace: str
    type: str


def parse_ports_from_config_map(config_map: Mapping[str, str]) -> list[int]:
    """Extract the ports named in a values config map's ``data`` entry."""
    text = config_map.get("data")
    if text is None:
        return []
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ValueError(f"cannot parse values: {err}") from err
    if document is None:
        document = {}
    if not isinstance(document, Mapping):
        raise ValueError("values document is not a mapping")
    properties = document.get("properties") or {}
    if not isinstance(properties, Mapping):
        raise ValueError("properties in values document is not a mapping")

    ports = []
    for prop in PROPERTIES_TO_CHECK:
        if prop in properties:
            raw = str(properties[prop])
            if not _INTEGER.match(raw):
                raise ValueError(f"invalid port {raw!r} for {prop}")
            ports.append(int(raw))
    return ports


def get_reserved_ports(
    runtimes: Iterable[RuntimeRef],
    get_config_map: Callable[[str, str], "Mapping[str, str] | None"],
) -> list[int]:
    """Collect the ports held by every Alluxio runtime in ``runtimes``."""
    ports: list[int] = []
    for runtime in runtimes:
        if runtime.type != "alluxio":
            continue
        config_map = get_config_map(f"{runtime.name}-{runtime.type}-values", runtime.namespace)
        if config_map is None:
            continue
        try:
            ports.extend(parse_ports_from_config_map(config_map))
        except ValueError as err:
            raise ValueError(f"parsePortsFromConfigMap when GetReservedPorts: {err}") from err
    return ports