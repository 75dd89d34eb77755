import pytest

from alluxioengine.port_parser import RuntimeRef, get_reserved_ports, parse_ports_from_config_map

VALUES_CONFIG_MAP_DATA = """
fullnameOverride: sample
image: example.invalid/engine/alluxio
imageTag: test-tag
properties:
  alluxio.master.rpc.port: "20000"
  alluxio.master.web.port: "20001"
  alluxio.worker.rpc.port: "20002"
  alluxio.worker.web.port: "20003"
  alluxio.job.master.rpc.port: "20004"
  alluxio.job.master.web.port: "20005"
  alluxio.job.worker.rpc.port: "20006"
  alluxio.job.worker.web.port: "20007"
  alluxio.job.worker.data.port: "20008"
  alluxio.master.journal.type: UFS
  alluxio.web.ui.enabled: "false"
fuse:
  args:
  - fuse
  - --fuse-opts=kernel_cache,allow_other
tieredstore:
  levels:
  - alias: MEM
    level: 0
    path: /dev/shm/default/sample
    quota: 1GB
"""

EXPECTED_PORTS = [20000, 20001, 20002, 20003, 20004, 20005, 20006, 20007, 20008]


def test_parse_ports_from_config_map():
    assert parse_ports_from_config_map({"data": VALUES_CONFIG_MAP_DATA}) == EXPECTED_PORTS


def test_parse_ports_follow_property_order_not_file_order():
    data = (
        "properties:\n"
        "  alluxio.worker.web.port: \"30003\"\n"
        "  alluxio.master.rpc.port: \"30000\"\n"
    )
    assert parse_ports_from_config_map({"data": data}) == [30000, 30003]


def test_parse_ports_without_data_entry():
    assert parse_ports_from_config_map({"other": "x"}) == []


def test_parse_ports_unquoted_integer():
    data = "properties:\n  alluxio.master.rpc.port: 20000\n"
    assert parse_ports_from_config_map({"data": data}) == [20000]


def test_parse_ports_invalid_port_raises():
    data = "properties:\n  alluxio.master.rpc.port: abc\n"
    with pytest.raises(ValueError):
        parse_ports_from_config_map({"data": data})


def test_parse_ports_invalid_yaml_raises():
    with pytest.raises(ValueError):
        parse_ports_from_config_map({"data": "properties: [unclosed"})


def test_get_reserved_ports_collects_alluxio_runtimes():
    maps = {
        ("hbase-alluxio-values", "default"): {"data": VALUES_CONFIG_MAP_DATA},
        ("spark-jindo-values", "default"): {"data": VALUES_CONFIG_MAP_DATA},
    }
    calls = []

    def get_config_map(name, namespace):
        calls.append(name)
        return maps.get((name, namespace))

    runtimes = [
        RuntimeRef(name="hbase", namespace="default", type="alluxio"),
        RuntimeRef(name="spark", namespace="default", type="jindo"),
        RuntimeRef(name="missing", namespace="default", type="alluxio"),
    ]
    assert get_reserved_ports(runtimes, get_config_map) == EXPECTED_PORTS
    assert calls == ["hbase-alluxio-values", "missing-alluxio-values"]


def test_get_reserved_ports_wraps_parse_errors():
    data = "properties:\n  alluxio.master.rpc.port: abc\n"

    def get_config_map(name, namespace):
        return {"data": data}

    with pytest.raises(ValueError, match="GetReservedPorts"):
        get_reserved_ports([RuntimeRef("hbase", "default", "alluxio")], get_config_map)