"""The value document rendered into the Alluxio helm chart."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import Any

import yaml


def _opt(key: str, default: Any = None, *, factory: Any = None, omit: bool = True) -> Any:
    """Declare a field together with its document key and emptiness rule."""
    metadata = {"yaml": key, "omitempty": omit}
    if factory is not None:
        return field(default_factory=factory, metadata=metadata)
    return field(default=default, metadata=metadata)


def _is_zero(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return all(_is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    return False


def _encode(obj: Any) -> Any:
    """Turn value objects into plain mappings, lists and scalars."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        out: dict[str, Any] = {}
        for f in dataclasses.fields(obj):
            item = getattr(obj, f.name)
            key = f.metadata.get("yaml", f.name.replace("_", ""))
            if f.metadata.get("omitempty", False) and _is_zero(item):
                continue
            out[key] = _encode(item)
        return out
    if isinstance(obj, dict):
        return {str(k): _encode(obj[k]) for k in sorted(obj, key=str)}
    if isinstance(obj, (list, tuple)):
        return [_encode(item) for item in obj]
    if isinstance(obj, enum.Enum):
        return obj.value
    return obj


@dataclass
class Ports:
    rpc: int = _opt("rpc", 0)
    web: int = _opt("web", 0)
    embedded: int = _opt("embedded", 0)
    data: int = _opt("data", 0)
    rest: int = _opt("rest", 0)


@dataclass
class APIGateway:
    enabled: bool = _opt("enabled", False)
    ports: Ports = _opt("ports", factory=Ports)


@dataclass
class JobMaster:
    ports: Ports = _opt("ports", factory=Ports)


@dataclass
class JobWorker:
    ports: Ports = _opt("ports", factory=Ports)


@dataclass
class Resources:
    requests: dict[str, str] = _opt("requests", factory=dict)
    limits: dict[str, str] = _opt("limits", factory=dict)


@dataclass
class Worker:
    jvm_options: list[str] = _opt("jvmOptions", factory=list)
    env: dict[str, str] = _opt("env", factory=dict)
    node_selector: dict[str, str] = _opt("nodeSelector", factory=dict)
    properties: dict[str, str] = _opt("properties", factory=dict)
    host_network: bool = _opt("hostNetwork", False)
    resources: Resources = _opt("resources", factory=Resources)
    ports: Ports = _opt("ports", factory=Ports)


@dataclass
class Restore:
    enabled: bool = _opt("enabled", False)
    path: str = _opt("path", "")
    pvc_name: str = _opt("pvcName", "")


@dataclass
class NodeSelectorRequirement:
    key: str = _opt("key", "")
    operator: str = _opt("operator", "")
    values: list[str] = _opt("values", factory=list)


@dataclass
class NodeSelectorTerm:
    match_expressions: list[NodeSelectorRequirement] = _opt(
        "matchExpressions", factory=list, omit=False
    )


@dataclass
class NodeSelector:
    node_selector_terms: list[NodeSelectorTerm] = _opt(
        "nodeSelectorTerms", factory=list, omit=False
    )


@dataclass
class NodeAffinity:
    required_during_scheduling_ignored_during_execution: NodeSelector | None = _opt(
        "requiredDuringSchedulingIgnoredDuringExecution", None, omit=False
    )


@dataclass
class Affinity:
    node_affinity: NodeAffinity | None = _opt("nodeAffinity", None, omit=False)


@dataclass
class Master:
    jvm_options: list[str] = _opt("jvmOptions", factory=list)
    env: dict[str, str] = _opt("env", factory=dict)
    affinity: Affinity = _opt("affinity", factory=Affinity, omit=False)
    node_selector: dict[str, str] = _opt("nodeSelector", factory=dict)
    properties: dict[str, str] = _opt("properties", factory=dict)
    replicas: int = _opt("replicaCount", 0)
    host_network: bool = _opt("hostNetwork", False)
    resources: Resources = _opt("resources", factory=Resources)
    ports: Ports = _opt("ports", factory=Ports)
    backup_path: str = _opt("backupPath", "")
    restore: Restore = _opt("restore", factory=Restore)


@dataclass
class Fuse:
    image: str = _opt("image", "")
    node_selector: dict[str, str] = _opt("nodeSelector", factory=dict)
    image_tag: str = _opt("imageTag", "")
    image_pull_policy: str = _opt("imagePullPolicy", "")
    properties: dict[str, str] = _opt("properties", factory=dict)
    env: dict[str, str] = _opt("env", factory=dict)
    jvm_options: list[str] = _opt("jvmOptions", factory=list)
    mount_path: str = _opt("mountPath", "")
    short_circuit_policy: str = _opt("shortCircuitPolicy", "")
    args: list[str] = _opt("args", factory=list)
    host_network: bool = _opt("hostNetwork", False)
    enabled: bool = _opt("enabled", False)
    resources: Resources = _opt("resources", factory=Resources)
    global_mode: bool = _opt("global", False)


@dataclass
class Level:
    alias: str = _opt("alias", "")
    level: int = _opt("level", 0, omit=False)
    mediumtype: str = _opt("mediumtype", "")
    type: str = _opt("type", "")
    path: str = _opt("path", "")
    quota: str = _opt("quota", "")
    high: str = _opt("high", "")
    low: str = _opt("low", "")


@dataclass
class Tieredstore:
    levels: list[Level] = _opt("levels", factory=list)


@dataclass
class Metastore:
    volume_type: str = _opt("volumeType", "")
    size: str = _opt("size", "")


@dataclass
class Journal:
    volume_type: str = _opt("volumeType", "")
    size: str = _opt("size", "")


@dataclass
class ShortCircuit:
    enable: bool = _opt("enable", False)
    policy: str = _opt("policy", "")
    volume_type: str = _opt("volumeType", "")


@dataclass
class UFSVolume:
    name: str = _opt("name", "", omit=False)
    container_path: str = _opt("containerPath", "", omit=False)


@dataclass
class UFSPath:
    host_path: str = _opt("hostPath", "", omit=False)
    name: str = _opt("name", "", omit=False)
    container_path: str = _opt("containerPath", "", omit=False)


@dataclass
class HadoopConfig:
    config_map: str = _opt("configMap", "", omit=False)
    include_hdfs_site: bool = _opt("includeHdfsSite", False, omit=False)
    include_core_site: bool = _opt("includeCoreSite", False, omit=False)


@dataclass
class InitUsers:
    enabled: bool = _opt("enabled", False, omit=False)
    image: str = _opt("image", "")
    image_tag: str = _opt("imageTag", "")
    image_pull_policy: str = _opt("imagePullPolicy", "")
    env_users: str = _opt("envUsers", "")
    dir: str = _opt("dir", "")
    env_tiered_paths: str = _opt("envTieredPaths", "")


@dataclass
class Alluxio:
    """Values of one Alluxio release."""

    fullname_override: str = _opt("fullnameOverride", "", omit=False)
    image: str = _opt("image", "")
    image_tag: str = _opt("imageTag", "")
    image_pull_policy: str = _opt("imagePullPolicy", "")
    user: int = _opt("user", 0, omit=False)
    group: int = _opt("group", 0, omit=False)
    fs_group: int = _opt("fsGroup", 0, omit=False)
    node_selector: dict[str, str] = _opt("nodeSelector", factory=dict)
    jvm_options: list[str] = _opt("jvmOptions", factory=list)
    properties: dict[str, str] = _opt("properties", factory=dict)
    master: Master = _opt("master", factory=Master)
    job_master: JobMaster = _opt("jobMaster", factory=JobMaster)
    worker: Worker = _opt("worker", factory=Worker)
    job_worker: JobWorker = _opt("jobWorker", factory=JobWorker)
    fuse: Fuse = _opt("fuse", factory=Fuse)
    api_gateway: APIGateway = _opt("apiGateway", factory=APIGateway)
    tieredstore: Tieredstore = _opt("tieredstore", factory=Tieredstore)
    metastore: Metastore = _opt("metastore", factory=Metastore)
    journal: Journal = _opt("journal", factory=Journal)
    short_circuit: ShortCircuit = _opt("shortCircuit", factory=ShortCircuit)
    ufs_paths: list[UFSPath] = _opt("ufsPaths", factory=list)
    ufs_volumes: list[UFSVolume] = _opt("ufsVolumes", factory=list)
    init_users: InitUsers = _opt("initUsers", factory=InitUsers)
    monitoring: str = _opt("monitoring", "")
    hadoop_config: HadoopConfig = _opt("hadoopConfig", factory=HadoopConfig)
    tolerations: list[Any] = _opt("tolerations", factory=list)

    def tiered_store_level0_path(self, name: str, namespace: str) -> str:
        """Path of the level 0 tier, or the shared-memory default."""
        for level in self.tieredstore.levels:
            if level.level == 0:
                return level.path
        return f"/dev/shm/{namespace}/{name}"

    def to_dict(self) -> dict[str, Any]:
        """The values as a plain mapping, empty optional parts left out."""
        return _encode(self)

    def to_yaml(self) -> str:
        """The values as a YAML document."""
        return yaml.safe_dump(self.to_dict(), sort_keys=False, default_flow_style=False)


def translate_cache_to_node_affinity(data_affinity: Any) -> NodeAffinity | None:
    """Turn a dataset's required node affinity into the chart's form."""
    if data_affinity is None or data_affinity.required is None:
        return None
    terms = [
        NodeSelectorTerm(
            match_expressions=[
                NodeSelectorRequirement(
                    key=match.key,
                    operator=str(match.operator),
                    values=list(match.values),
                )
                for match in term.match_expressions
            ]
        )
        for term in data_affinity.required
    ]
    return NodeAffinity(
        required_during_scheduling_ignored_during_execution=NodeSelector(
            node_selector_terms=terms
        )
    )