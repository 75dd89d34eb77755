"""Default tuning, permission and gateway settings for the Alluxio values."""

from __future__ import annotations

from .spec import AlluxioRuntime, Dataset, EngineContext
from .values import Alluxio

READ_ONLY_MANY = "ReadOnlyMany"

_HTTP_SCHEMES = ("http://", "https://")

_DEFAULT_PROPERTIES: tuple[tuple[str, str], ...] = (
    ("alluxio.fuse.jnifuse.enabled", "true"),
    ("alluxio.master.metastore", "ROCKS"),
    ("alluxio.web.ui.enabled", "false"),
    ("alluxio.user.update.file.accesstime.disabled", "true"),
    ("alluxio.user.client.cache.enabled", "false"),
    ("alluxio.master.metastore.inode.cache.max.size", "10000000"),
    ("alluxio.master.journal.log.size.bytes.max", "500MB"),
    ("alluxio.master.metadata.sync.concurrency.level", "128"),
    ("alluxio.master.metadata.sync.executor.pool.size", "128"),
    ("alluxio.master.metadata.sync.ufs.prefetch.pool.size", "128"),
    ("alluxio.user.block.worker.client.pool.min", "512"),
    ("alluxio.fuse.debug.enabled", "false"),
    ("alluxio.user.file.writetype.default", "MUST_CACHE"),
    ("alluxio.user.ufs.block.read.location.policy", "alluxio.client.block.policy.LocalFirstPolicy"),
    (
        "alluxio.user.block.write.location.policy.class",
        "alluxio.client.block.policy.LocalFirstAvoidEvictionPolicy",
    ),
    ("alluxio.worker.allocator.class", "alluxio.worker.block.allocator.MaxFreeAllocator"),
    ("alluxio.user.block.size.bytes.default", "16MB"),
    ("alluxio.user.streaming.reader.chunk.size.bytes", "32MB"),
    ("alluxio.user.local.reader.chunk.size.bytes", "32MB"),
    ("alluxio.worker.network.reader.buffer.size", "32MB"),
    # Metrics are on by default for better monitoring.
    ("alluxio.user.metrics.collection.enabled", "true"),
    ("alluxio.master.rpc.executor.max.pool.size", "1024"),
    ("alluxio.master.rpc.executor.core.pool.size", "128"),
    ("alluxio.user.file.passive.cache.enabled", "false"),
    ("alluxio.user.block.avoid.eviction.policy.reserved.size.bytes", "2GB"),
    ("alluxio.master.journal.folder", "/journal"),
    ("alluxio.master.journal.type", "UFS"),
    ("alluxio.user.block.master.client.pool.gc.threshold", "2day"),
    ("alluxio.user.file.master.client.threads", "1024"),
    ("alluxio.user.block.master.client.threads", "1024"),
    ("alluxio.user.file.create.ttl.action", "FREE"),
    ("alluxio.user.file.readtype.default", "CACHE"),
    ("alluxio.security.stale.channel.purge.interval", "365d"),
    ("alluxio.user.metadata.cache.enabled", "true"),
    ("alluxio.user.metadata.cache.expiration.time", "2day"),
    ("alluxio.user.metadata.cache.max.size", "6000000"),
    ("alluxio.fuse.cached.paths.max", "1000000"),
    ("alluxio.job.worker.threadpool.size", "164"),
    ("alluxio.user.worker.list.refresh.interval", "2min"),
    ("alluxio.user.logging.threshold", "1000ms"),
    ("alluxio.fuse.logging.threshold", "1000ms"),
    ("alluxio.worker.block.master.client.pool.size", "1024"),
    ("alluxio.fuse.shared.caching.reader.enabled", "true"),
    ("alluxio.job.master.finished.job.retention.time", "30sec"),
    ("alluxio.underfs.object.store.breadcrumbs.enabled", "false"),
)

_HTTP_PROPERTIES: tuple[tuple[str, str], ...] = (
    ("alluxio.user.block.size.bytes.default", "256MB"),
    ("alluxio.user.streaming.reader.chunk.size.bytes", "256MB"),
    ("alluxio.user.local.reader.chunk.size.bytes", "256MB"),
    ("alluxio.worker.network.reader.buffer.size", "256MB"),
    ("alluxio.user.streaming.data.timeout", "300sec"),
)

_PERMISSION_PROPERTIES: tuple[tuple[str, str], ...] = (
    ("alluxio.master.security.impersonation.root.users", "*"),
    ("alluxio.master.security.impersonation.root.groups", "*"),
    ("alluxio.security.authorization.permission.enabled", "false"),
)

_MASTER_JVM_OPTIONS = ["-Xmx16G", "-XX:+UnlockExperimentalVMOptions"]
_WORKER_JVM_OPTIONS = ["-Xmx12G", "-XX:+UnlockExperimentalVMOptions", "-XX:MaxDirectMemorySize=32g"]
_FUSE_JVM_OPTIONS = [
    "-Xmx16G",
    "-Xms16G",
    "-XX:+UseG1GC",
    "-XX:MaxDirectMemorySize=32g",
    "-XX:+UnlockExperimentalVMOptions",
]
_FUSE_OPTS = "max_read=131072,attr_timeout=7200,entry_timeout=7200,nonempty"


def set_default_properties(runtime: AlluxioRuntime, value: Alluxio, key: str, default: str) -> None:
    """Set ``key`` in the values unless the runtime sets it itself."""
    if key not in runtime.properties:
        value.properties[key] = default


def _ensure_properties(runtime: AlluxioRuntime, value: Alluxio) -> None:
    if not value.properties:
        value.properties = dict(runtime.properties)


def _is_read_only(engine: EngineContext | None) -> bool:
    if engine is None or engine.access_modes is None:
        return False
    return READ_ONLY_MANY in engine.access_modes


def optimize_default_properties(
    engine: EngineContext | None, runtime: AlluxioRuntime, value: Alluxio
) -> None:
    """Fill in the tuned defaults for properties the runtime leaves open."""
    _ensure_properties(runtime, value)
    for key, default in _DEFAULT_PROPERTIES:
        set_default_properties(runtime, value, key, default)

    # Direct memory IO is only safe for read-only workloads with a single
    # tier holding a single storage directory.
    if engine is not None and engine.access_modes is not None:
        levels = runtime.tieredstore
        if _is_read_only(engine) and len(levels) == 1 and len(levels[0].paths) == 1:
            set_default_properties(runtime, value, "alluxio.user.direct.memory.io.enabled", "true")


def optimize_default_properties_for_http(
    runtime: AlluxioRuntime, dataset: Dataset, value: Alluxio
) -> None:
    """Use larger blocks and no fuse readahead when every mount is HTTP."""
    if not all(mount.mount_point.startswith(_HTTP_SCHEMES) for mount in dataset.mounts):
        return
    for key, default in _HTTP_PROPERTIES:
        set_default_properties(runtime, value, key, default)
    if not runtime.fuse.args:
        value.fuse.args[1] = ",".join([value.fuse.args[1], "max_readahead=0"])


def set_port_properties(runtime: AlluxioRuntime, value: Alluxio) -> None:
    """Record the allocated ports as properties."""
    ports = [
        ("alluxio.master.rpc.port", value.master.ports.rpc),
        ("alluxio.master.web.port", value.master.ports.web),
        ("alluxio.worker.rpc.port", value.worker.ports.rpc),
        ("alluxio.worker.web.port", value.worker.ports.web),
        ("alluxio.job.master.rpc.port", value.job_master.ports.rpc),
        ("alluxio.job.master.web.port", value.job_master.ports.web),
        ("alluxio.job.worker.rpc.port", value.job_worker.ports.rpc),
        ("alluxio.job.worker.web.port", value.job_worker.ports.web),
        ("alluxio.job.worker.data.port", value.job_worker.ports.data),
    ]
    if runtime.api_gateway_enabled:
        ports.append(("alluxio.proxy.web.port", value.api_gateway.ports.rest))
    if value.master.ports.embedded != 0 and value.job_master.ports.embedded != 0:
        ports.append(("alluxio.master.embedded.journal.port", value.master.ports.embedded))
        ports.append(("alluxio.job.master.embedded.journal.port", value.job_master.ports.embedded))
    for key, port in ports:
        set_default_properties(runtime, value, key, str(port))


def optimize_default_for_master(runtime: AlluxioRuntime, value: Alluxio) -> None:
    """Give the master JVM options, the runtime's or the defaults."""
    if runtime.master.jvm_options:
        value.master.jvm_options = list(runtime.master.jvm_options)
    if not value.master.jvm_options:
        value.master.jvm_options = list(_MASTER_JVM_OPTIONS)


def optimize_default_for_worker(runtime: AlluxioRuntime, value: Alluxio) -> None:
    """Give the worker JVM options, the runtime's or the defaults."""
    if runtime.worker.jvm_options:
        value.worker.jvm_options = list(runtime.worker.jvm_options)
    if not value.worker.jvm_options:
        value.worker.jvm_options = list(_WORKER_JVM_OPTIONS)


def optimize_default_fuse(
    engine: EngineContext | None, runtime: AlluxioRuntime, value: Alluxio
) -> None:
    """Give the fuse JVM options and arguments, the runtime's or the defaults."""
    if runtime.fuse.jvm_options:
        value.fuse.jvm_options = list(runtime.fuse.jvm_options)
    if not value.fuse.jvm_options:
        value.fuse.jvm_options = list(_FUSE_JVM_OPTIONS)

    if runtime.fuse.args:
        value.fuse.args = list(runtime.fuse.args)
    else:
        mode = "ro" if _is_read_only(engine) else "rw"
        value.fuse.args = ["fuse", f"--fuse-opts=kernel_cache,{mode},{_FUSE_OPTS}"]


def transform_permission(runtime: AlluxioRuntime, value: Alluxio) -> None:
    """Open impersonation to root and turn permission checks off by default."""
    _ensure_properties(runtime, value)
    for key, default in _PERMISSION_PROPERTIES:
        set_default_properties(runtime, value, key, default)


def transform_api_gateway(runtime: AlluxioRuntime, value: Alluxio) -> None:
    """Carry the gateway switch into the values."""
    value.api_gateway.enabled = runtime.api_gateway_enabled