# alluxioengine

`alluxioengine` turns a dataset description and an Alluxio runtime
specification into the values document used to deploy an Alluxio cache
cluster with its helm chart. It also builds the Alluxio shell commands
(`alluxio fs`, `alluxio fsadmin`, `alluxio getConf`) and parses their
output, running them through an executor you supply.

## Installation

```
pip install alluxioengine
```

## Building chart values

The input types live in `alluxioengine.spec`: `Dataset`, `Mount`,
`User`, `Toleration`, `CacheableNodeAffinity`, `AlluxioRuntime`,
`ComponentSpec`, `FuseSpec`, `TieredLevel`, `InitUsersSpec` and
`EngineContext`. `EngineContext` carries the engine's name, namespace,
images, fuse mount path and node label; `config_map_name()` gives the
name of the config map that holds the rendered values
(`<name>-<runtime_type>-values`).

The output is an `alluxioengine.values.Alluxio` object.
`Alluxio.to_dict()` turns it into a plain mapping, leaving out empty
optional parts, and `Alluxio.to_yaml()` into a YAML document.

`alluxioengine.transform.ValueTransformer` runs the whole pipeline:
common part, masters (including restore from a metadata backup), workers,
FUSE, Hadoop configuration, local and volume mounts, permissions, default
tuning properties, port allocation and the API gateway. It takes two
callables:

- `allocate_ports(n)` returns `n` free ports;
- `get_config_map(name, namespace)` returns a config map's data, or
  `None` when it does not exist.

Problems are raised as `TransformError`, for example when too few ports
are handed out or the named Hadoop config map is missing or holds neither
`hdfs-site.xml` nor `core-site.xml`.

```python
from alluxioengine.spec import AlluxioRuntime, Dataset, EngineContext, Mount
from alluxioengine.transform import ValueTransformer

engine = EngineContext(name="hbase", namespace="default")
runtime = AlluxioRuntime(name="hbase", namespace="default")
dataset = Dataset(mounts=[Mount(name="data", mount_point="local:///mnt/data")])

ports = iter(range(20000, 21000))
transformer = ValueTransformer(
    engine,
    allocate_ports=lambda n: [next(ports) for _ in range(n)],
    get_config_map=lambda name, namespace: None,
)
print(transformer.transform(runtime, dataset).to_yaml())
```

Each step is also available on its own:

- `alluxioengine.optimization`: `set_default_properties`,
  `optimize_default_properties`, `optimize_default_properties_for_http`,
  `set_port_properties`, `optimize_default_for_master`,
  `optimize_default_for_worker`, `optimize_default_fuse`,
  `transform_permission`, `transform_api_gateway`.
- `alluxioengine.fuse`: `transform_fuse`, `transform_init_users`.
- `alluxioengine.volumes`: `transform_dataset_to_volume`,
  `transform_resources_for_worker`, `transform_resources_for_fuse`,
  `transform_tolerations`.
- `alluxioengine.values.translate_cache_to_node_affinity` converts a
  dataset's required node affinity into the chart's form.

`alluxioengine.spec` also has quantity helpers: `parse_quantity("2Gi")`
gives a whole number of bytes, `format_quantity` writes it back with the
largest binary suffix that divides it, and `to_alluxio_unit` rewrites
`2Gi` as `2GB`.

## Reserved ports

`alluxioengine.port_parser.parse_ports_from_config_map` reads the ports
named in the `data` entry of a stored values config map.
`get_reserved_ports(runtimes, get_config_map)` collects them across every
runtime of type `alluxio`, each given as a `RuntimeRef`; config maps that
are missing are skipped.

## Alluxio shell operations

`alluxioengine.fileutils.AlluxioFileUtils(pod_name, container, namespace,
executor=None, timeout=1500.0)` builds the commands and parses their
output: `is_exist`, `report_summary`, `load_metadata`,
`load_metadata_without_timeout`, `query_metadata_info` (with a
`MetadataKey`), `mkdir`, `mount`, `is_mounted`, `ready`, `du`, `count`,
`get_file_count`, `report_metrics`, `report_capacity`, `cached_state`,
`clean_cache`, `get_conf` and `sync_local_dir`.

The executor is a callable taking the pod name, the container, the
namespace and the argument list, returning `(stdout, stderr)`. On failure
it should raise, preferably a `FileUtilsError` carrying the command's
`stdout` and `stderr`. Most commands are given up after `timeout`
seconds. Failures and unparsable output are raised as `FileUtilsError`.

`ram_in_bytes("32MB")` parses a human-readable size in binary units.

## What it does not do

The package talks to no cluster. It does not install or delete helm
releases, create or read config maps, run commands in pods, allocate
ports, label nodes or update runtime and dataset status; those come from
the callables you pass in. Without an executor, every shell operation
raises `FileUtilsError`. There is no command-line program.