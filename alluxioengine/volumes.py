"""Under-storage volumes, resource limits and tolerations for the Alluxio values."""

from __future__ import annotations

import dataclasses
import logging
import posixpath

from .spec import AlluxioRuntime, Dataset, EngineContext, Mount, TieredLevel, parse_quantity, format_quantity
from .values import Affinity, Alluxio, Resources, UFSPath, UFSVolume, translate_cache_to_node_affinity

logger = logging.getLogger(__name__)

PATH_SCHEME = "local://"
VOLUME_SCHEME = "pvc://"
LOCAL_STORAGE_ROOT_PATH = "/underFSStorage"
MEMORY_MEDIUM = "MEM"
RESOURCE_MEMORY = "memory"

_WORKER_MEMORY_BASE = "20Gi"
_FUSE_MEMORY_BASE = "50Gi"


def _local_storage_path(mount: Mount) -> str:
    """Path inside the container where a local or volume mount is placed."""
    if posixpath.isabs(mount.path):
        return mount.path
    return posixpath.join(LOCAL_STORAGE_ROOT_PATH, mount.name)


def transform_dataset_to_volume(runtime: AlluxioRuntime, dataset: Dataset, value: Alluxio) -> None:
    """Expose local paths and persistent volume claims of the dataset to the pods."""
    for mount in dataset.mounts:
        if mount.mount_point.startswith(PATH_SCHEME):
            value.ufs_paths.append(
                UFSPath(
                    host_path=mount.mount_point[len(PATH_SCHEME):],
                    name=mount.name,
                    container_path=_local_storage_path(mount),
                )
            )
        elif mount.mount_point.startswith(VOLUME_SCHEME):
            value.ufs_volumes.append(
                UFSVolume(
                    name=mount.mount_point[len(VOLUME_SCHEME):],
                    container_path=_local_storage_path(mount),
                )
            )

    if value.ufs_paths and dataset.node_affinity is not None:
        value.master.affinity = Affinity(
            node_affinity=translate_cache_to_node_affinity(dataset.node_affinity)
        )


def _memory_cache_bytes(levels: list[TieredLevel]) -> int:
    return sum(
        parse_quantity(quota)
        for level in levels
        if level.medium_type == MEMORY_MEDIUM
        for quota in level.quotas
    )


def _memory_limit(
    limits: dict[str, str] | None,
    requests: dict[str, str] | None,
    levels: list[TieredLevel],
    base: str,
) -> Resources | None:
    if limits is None or RESOURCE_MEMORY not in limits:
        return None
    resources = Resources(requests=dict(requests or {}), limits=dict(limits))
    mem_limit = parse_quantity(base)
    requested = parse_quantity(limits[RESOURCE_MEMORY])
    if requested != 0:
        mem_limit = requested
    mem_limit += _memory_cache_bytes(levels)
    resources.limits[RESOURCE_MEMORY] = format_quantity(mem_limit)
    return resources


def transform_resources_for_worker(
    engine: EngineContext | None, runtime: AlluxioRuntime, value: Alluxio
) -> None:
    """Set worker resources, raising the memory limit by the memory cache size."""
    resources = _memory_limit(
        runtime.worker.limits, runtime.worker.requests, runtime.tieredstore, _WORKER_MEMORY_BASE
    )
    if resources is None:
        logger.info("skip setting memory limit for worker")
        return
    value.worker.resources = resources
    logger.info("worker memory limit set to %s", resources.limits[RESOURCE_MEMORY])


def transform_resources_for_fuse(
    engine: EngineContext | None, runtime: AlluxioRuntime, value: Alluxio
) -> None:
    """Set fuse resources, raising the memory limit by the memory cache size."""
    resources = _memory_limit(
        runtime.fuse.limits, runtime.fuse.requests, runtime.tieredstore, _FUSE_MEMORY_BASE
    )
    if resources is None:
        logger.info("skip setting memory limit for fuse")
        return
    value.fuse.resources = resources
    logger.info("fuse memory limit set to %s", resources.limits[RESOURCE_MEMORY])


def transform_tolerations(dataset: Dataset, value: Alluxio) -> None:
    """Copy the dataset's tolerations without their eviction timeouts."""
    if dataset.tolerations:
        value.tolerations = [
            dataclasses.replace(toleration, toleration_seconds=None)
            for toleration in dataset.tolerations
        ]