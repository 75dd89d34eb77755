"""Build the Alluxio chart values from a runtime and its dataset."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence

from .fuse import transform_fuse, transform_init_users
from .optimization import (
    optimize_default_for_master,
    optimize_default_for_worker,
    optimize_default_properties,
    optimize_default_properties_for_http,
    set_port_properties,
    transform_api_gateway,
    transform_permission,
)
from .spec import AlluxioRuntime, Dataset, EngineContext, to_alluxio_unit
from .values import Alluxio, Journal, Level, Master, ShortCircuit, Worker
from .volumes import (
    LOCAL_STORAGE_ROOT_PATH,
    PATH_SCHEME,
    VOLUME_SCHEME,
    transform_dataset_to_volume,
    transform_resources_for_worker,
    transform_tolerations,
)

logger = logging.getLogger(__name__)

PORT_NUM = 9
ALLUXIO_RUNTIME_METRICS_LABEL = "alluxio_runtime_metrics"
DEFAULT_PULL_POLICY = "IfNotPresent"
LEVEL0_PATH_ENV = "ALLUXIO_WORKER_TIEREDSTORE_LEVEL0_DIRS_PATH"

HADOOP_CONF_MOUNT_PATH = "/hdfs-config"
HADOOP_CONF_HDFS_SITE_FILENAME = "hdfs-site.xml"
HADOOP_CONF_CORE_SITE_FILENAME = "core-site.xml"

PortAllocator = Callable[[int], Sequence[int]]
ConfigMapGetter = Callable[[str, str], "Mapping[str, str] | None"]


class TransformError(Exception):
    """The runtime cannot be turned into chart values."""


def _parse_backup_restore_path(location: str) -> tuple[str, str]:
    """Split ``pvc://<name>/sub`` or ``local://sub`` into a claim name and a path."""
    pvc_name = ""
    if location.startswith(VOLUME_SCHEME):
        rest = location[len(VOLUME_SCHEME):]
        pvc_name = rest.split("/")[0]
        path = rest[len(pvc_name):]
    elif location.startswith(PATH_SCHEME):
        path = location[len(PATH_SCHEME):]
    else:
        raise ValueError(
            "DataBackupRestorePath is not in the form of pvc://<pvcName>/subpath or local://subpath"
        )
    if not path.endswith("/"):
        path += "/"
    return pvc_name, path


class ValueTransformer:
    """Turns an AlluxioRuntime and its Dataset into an :class:`Alluxio` value.

    ``allocate_ports(n)`` hands out ``n`` free ports; ``get_config_map(name,
    namespace)`` returns a config map's data, or None when it does not exist.
    """

    def __init__(
        self,
        engine: EngineContext,
        allocate_ports: PortAllocator,
        get_config_map: ConfigMapGetter,
    ) -> None:
        self.engine = engine
        self._allocate_ports = allocate_ports
        self._get_config_map = get_config_map

    def transform(self, runtime: AlluxioRuntime | None, dataset: Dataset) -> Alluxio:
        """Build the complete values document."""
        if runtime is None:
            raise TransformError("the alluxioRuntime is null")

        value = Alluxio(fullname_override=self.engine.name)
        self.transform_common_part(runtime, dataset, value)
        self.transform_masters(runtime, dataset, value)
        self.transform_workers(runtime, value)
        transform_fuse(self.engine, runtime, dataset, value)
        self.transform_hadoop_config(runtime, value)
        transform_dataset_to_volume(runtime, dataset, value)
        transform_permission(runtime, value)
        optimize_default_properties(self.engine, runtime, value)
        optimize_default_properties_for_http(runtime, dataset, value)
        self.allocate_ports(runtime, value)
        set_port_properties(runtime, value)
        transform_api_gateway(runtime, value)
        return value

    def transform_common_part(
        self, runtime: AlluxioRuntime, dataset: Dataset, value: Alluxio
    ) -> None:
        """Images, users, base properties, tiered store and shared settings."""
        engine = self.engine
        value.image = runtime.image or engine.runtime_image
        value.image_tag = runtime.image_tag or engine.runtime_image_tag
        value.image_pull_policy = runtime.image_pull_policy or DEFAULT_PULL_POLICY

        value.user = 0
        value.group = 0
        value.fs_group = 0
        transform_init_users(engine, runtime, value)

        value.properties = dict(runtime.properties)
        value.properties["alluxio.master.mount.table.root.ufs"] = LOCAL_STORAGE_ROOT_PATH

        data_replicas = runtime.data_replicas if runtime.data_replicas > 0 else 1
        value.properties["alluxio.user.file.replication.max"] = str(data_replicas)

        if runtime.jvm_options:
            value.jvm_options = list(runtime.jvm_options)

        value.fuse.short_circuit_policy = "local"

        levels = []
        for spec_level in runtime.tieredstore:
            number = next(
                index
                for index, candidate in enumerate(runtime.tieredstore)
                if candidate.medium_type == spec_level.medium_type
            )
            paths = [f"{path}/{runtime.namespace}/{runtime.name}" for path in spec_level.paths]
            quotas = [to_alluxio_unit(quota) for quota in spec_level.quotas]
            levels.append(
                Level(
                    alias=spec_level.medium_type,
                    level=number,
                    type="hostPath",
                    path=",".join(paths),
                    mediumtype=",".join([spec_level.medium_type] * len(paths)),
                    low=spec_level.low,
                    high=spec_level.high,
                    quota=",".join(quotas),
                )
            )
        value.tieredstore.levels = levels

        value.journal = Journal(volume_type="emptyDir", size="30Gi")
        value.short_circuit = ShortCircuit(volume_type="emptyDir", policy="local", enable=True)

        if not runtime.disable_prometheus:
            value.monitoring = ALLUXIO_RUNTIME_METRICS_LABEL

        transform_tolerations(dataset, value)

    def transform_masters(self, runtime: AlluxioRuntime, dataset: Dataset, value: Alluxio) -> None:
        """The master section, including restore from a metadata backup."""
        engine = self.engine
        value.master = Master()
        master = value.master

        backup_root = os.environ.get("FLUID_WORKDIR") or "/tmp"
        master.backup_path = f"{backup_root}/alluxio-backup/{engine.namespace}/{engine.name}"
        master.replicas = runtime.master.replicas or 1

        optimize_default_for_master(runtime, value)

        master.env = dict(runtime.master.env)
        master.env[LEVEL0_PATH_ENV] = value.tiered_store_level0_path(engine.name, engine.namespace)

        if runtime.master.properties:
            master.properties = dict(runtime.master.properties)

        master.host_network = True

        if runtime.master.node_selector:
            master.node_selector = dict(runtime.master.node_selector)

        location = dataset.data_restore_location
        if location is None or not location.path:
            return
        try:
            pvc_name, path = _parse_backup_restore_path(location.path)
        except ValueError as err:
            logger.error("restore path cannot analyse: %s (%s)", location.path, err)
            pvc_name, path = "", ""

        if pvc_name:
            master.restore.enabled = True
            master.restore.pvc_name = pvc_name
            master.restore.path = path
            master.env["JOURNAL_BACKUP"] = "/pvc" + path + engine.metadata_file_name
        elif location.node_name:
            master.restore.enabled = True
            master.node_selector = dict(master.node_selector)
            master.node_selector["kubernetes.io/hostname"] = location.node_name
            master.env["JOURNAL_BACKUP"] = "/host/" + engine.metadata_file_name
            master.restore.path = path
        else:
            logger.error(
                "DataRestoreLocation in Dataset cannot analyse, will not restore: %s", location
            )

    def transform_workers(self, runtime: AlluxioRuntime, value: Alluxio) -> None:
        """The worker section."""
        engine = self.engine
        value.worker = Worker()
        worker = value.worker
        optimize_default_for_worker(runtime, value)

        worker.node_selector[engine.common_label_name] = "true"

        if runtime.worker.properties:
            worker.properties = dict(runtime.worker.properties)

        worker.env = dict(runtime.worker.env)
        worker.env[LEVEL0_PATH_ENV] = value.tiered_store_level0_path(engine.name, engine.namespace)
        worker.host_network = True

        transform_resources_for_worker(engine, runtime, value)

    def allocate_ports(self, runtime: AlluxioRuntime, value: Alluxio) -> None:
        """Reserve ports for every component and record them in the values."""
        gateway = runtime.api_gateway_enabled
        embedded = runtime.master.replicas > 1
        expected = PORT_NUM + (1 if gateway else 0) + (2 if embedded else 0)

        ports = list(self._allocate_ports(expected))
        if len(ports) < expected:
            raise TransformError(
                f"the length of port list is {len(ports)}, less than expected {expected}"
            )
        it = iter(ports)
        value.master.ports.rpc = next(it)
        value.master.ports.web = next(it)
        value.worker.ports.rpc = next(it)
        value.worker.ports.web = next(it)
        value.job_master.ports.rpc = next(it)
        value.job_master.ports.web = next(it)
        value.job_worker.ports.rpc = next(it)
        value.job_worker.ports.web = next(it)
        value.job_worker.ports.data = next(it)
        if gateway:
            value.api_gateway.ports.rest = next(it)
        if embedded:
            value.master.ports.embedded = next(it)
            value.job_master.ports.embedded = next(it)

    def transform_hadoop_config(self, runtime: AlluxioRuntime, value: Alluxio) -> None:
        """Mount the user's hdfs-site.xml and core-site.xml when configured."""
        name = runtime.hadoop_config
        if not name:
            return

        data = self._get_config_map(name, runtime.namespace)
        if data is None:
            raise TransformError(f'specified hadoopConfig "{name}" is not found')

        conf_files = []
        for key in data:
            if key == HADOOP_CONF_HDFS_SITE_FILENAME:
                value.hadoop_config.include_hdfs_site = True
                conf_files.append(f"{HADOOP_CONF_MOUNT_PATH}/{HADOOP_CONF_HDFS_SITE_FILENAME}")
            elif key == HADOOP_CONF_CORE_SITE_FILENAME:
                value.hadoop_config.include_core_site = True
                conf_files.append(f"{HADOOP_CONF_MOUNT_PATH}/{HADOOP_CONF_CORE_SITE_FILENAME}")

        if not value.hadoop_config.include_core_site and not value.hadoop_config.include_hdfs_site:
            raise TransformError(
                f'Neither "{HADOOP_CONF_HDFS_SITE_FILENAME}" nor "{HADOOP_CONF_CORE_SITE_FILENAME}" '
                f'is found in the specified configMap "{name}"'
            )

        value.hadoop_config.config_map = name
        value.properties["alluxio.underfs.hdfs.configuration"] = ":".join(conf_files)