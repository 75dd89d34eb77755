"""Dataset and runtime specifications the values are built from."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_CEILING, Decimal


@dataclass
class User:
    uid: int | None = None
    gid: int | None = None
    user_name: str = ""
    group_name: str = ""


@dataclass
class Mount:
    mount_point: str = ""
    name: str = ""
    options: dict[str, str] = field(default_factory=dict)
    read_only: bool = False
    shared: bool = False
    path: str = ""


@dataclass
class DataRestoreLocation:
    path: str = ""
    node_name: str = ""


@dataclass
class Toleration:
    key: str = ""
    operator: str = ""
    value: str = ""
    effect: str = ""
    toleration_seconds: int | None = None


@dataclass
class MatchExpression:
    key: str = ""
    operator: str = ""
    values: list[str] = field(default_factory=list)


@dataclass
class SelectorTerm:
    match_expressions: list[MatchExpression] = field(default_factory=list)


@dataclass
class CacheableNodeAffinity:
    required: list[SelectorTerm] | None = None


@dataclass
class Dataset:
    name: str = ""
    namespace: str = ""
    mounts: list[Mount] = field(default_factory=list)
    owner: User | None = None
    node_affinity: CacheableNodeAffinity | None = None
    tolerations: list[Toleration] = field(default_factory=list)
    data_restore_location: DataRestoreLocation | None = None
    access_modes: list[str] = field(default_factory=list)


@dataclass
class TieredLevel:
    medium_type: str = ""
    paths: list[str] = field(default_factory=list)
    quotas: list[str] = field(default_factory=list)
    high: str = ""
    low: str = ""


@dataclass
class ComponentSpec:
    replicas: int = 0
    jvm_options: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    node_selector: dict[str, str] = field(default_factory=dict)
    limits: dict[str, str] | None = None
    requests: dict[str, str] | None = None


@dataclass
class FuseSpec:
    image: str = ""
    image_tag: str = ""
    image_pull_policy: str = ""
    jvm_options: list[str] = field(default_factory=list)
    properties: dict[str, str] = field(default_factory=dict)
    env: dict[str, str] = field(default_factory=dict)
    args: list[str] = field(default_factory=list)
    global_mode: bool = False
    node_selector: dict[str, str] = field(default_factory=dict)
    limits: dict[str, str] | None = None
    requests: dict[str, str] | None = None


@dataclass
class InitUsersSpec:
    image: str = ""
    image_tag: str = ""
    image_pull_policy: str = ""


@dataclass
class AlluxioRuntime:
    name: str = ""
    namespace: str = ""
    image: str = ""
    image_tag: str = ""
    image_pull_policy: str = ""
    properties: dict[str, str] = field(default_factory=dict)
    jvm_options: list[str] = field(default_factory=list)
    replicas: int = 0
    master: ComponentSpec = field(default_factory=ComponentSpec)
    job_master: ComponentSpec = field(default_factory=ComponentSpec)
    worker: ComponentSpec = field(default_factory=ComponentSpec)
    job_worker: ComponentSpec = field(default_factory=ComponentSpec)
    fuse: FuseSpec = field(default_factory=FuseSpec)
    tieredstore: list[TieredLevel] = field(default_factory=list)
    data_replicas: int = 0
    run_as: User | None = None
    init_users: InitUsersSpec = field(default_factory=InitUsersSpec)
    api_gateway_enabled: bool = False
    disable_prometheus: bool = False
    hadoop_config: str = ""


@dataclass
class EngineContext:
    """Identity and environment of the engine that renders a runtime.

    ``access_modes`` is None when the dataset's access modes are unknown.
    """

    name: str = ""
    namespace: str = ""
    runtime_type: str = "alluxio"
    init_image: str = ""
    access_modes: list[str] | None = None
    runtime_image: str = ""
    runtime_image_tag: str = ""
    fuse_image: str = ""
    fuse_image_tag: str = ""
    mount_root: str = "/runtime-mnt"
    mount_path: str = ""
    common_label_name: str = ""
    metadata_file_name: str = ""
    init_user_dir: str = ""

    def __post_init__(self) -> None:
        if not self.mount_path:
            self.mount_path = (
                f"{self.mount_root}/{self.runtime_type}/{self.namespace}/"
                f"{self.name}/{self.runtime_type}-fuse"
            )
        if not self.common_label_name:
            self.common_label_name = f"fluid.io/s-{self.namespace}-{self.name}"

    def config_map_name(self) -> str:
        """Name of the config map holding the rendered values."""
        return f"{self.name}-{self.runtime_type}-values"


_QUANTITY = re.compile(
    r"^([+-]?(?:\d+(?:\.\d*)?|\.\d+))(Ki|Mi|Gi|Ti|Pi|Ei|k|M|G|T|P|E|m|[eE][+-]?\d+)?$"
)

_BINARY = [("Ki", 1024), ("Mi", 1024**2), ("Gi", 1024**3), ("Ti", 1024**4), ("Pi", 1024**5), ("Ei", 1024**6)]
_DECIMAL = {"k": 10**3, "M": 10**6, "G": 10**9, "T": 10**12, "P": 10**15, "E": 10**18}


def parse_quantity(text: str) -> int:
    """Parse a resource quantity such as ``2Gi`` into a whole number, rounding up."""
    match = _QUANTITY.match(text.strip())
    if match is None:
        raise ValueError(f"invalid quantity: {text!r}")
    number = Decimal(match.group(1))
    suffix = match.group(2) or ""
    if suffix in dict(_BINARY):
        number *= dict(_BINARY)[suffix]
    elif suffix in _DECIMAL:
        number *= _DECIMAL[suffix]
    elif suffix == "m":
        number /= 1000
    elif suffix:
        number *= Decimal(10) ** int(suffix[1:])
    return int(number.to_integral_value(rounding=ROUND_CEILING))


def format_quantity(value: int) -> str:
    """Format a whole number with the largest binary suffix that divides it."""
    if value == 0:
        return "0"
    for suffix, base in reversed(_BINARY):
        if value % base == 0:
            return f"{value // base}{suffix}"
    return str(value)


def to_alluxio_unit(text: str) -> str:
    """Rewrite a binary quantity in the unit spelling Alluxio expects."""
    value = text.strip()
    if value.endswith("i"):
        value = value.replace("i", "B")
    return value