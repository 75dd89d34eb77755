import time

import pytest

from alluxioengine.fileutils import (
    AlluxioFileUtils,
    FileUtilsError,
    MetadataKey,
    ram_in_bytes,
)

NOT_EXIST = "not-exist"
OTHER_ERR = "other-err"
FINE = "fine"
EXEC_ERR = "exec-err"
TOO_MANY_LINES = "too many lines"
DATA_NUM = "data nums not match"
PARSE_ERR = "parse err"


class Recorder:
    def __init__(self, respond):
        self.respond = respond
        self.calls = []

    def __call__(self, pod_name, container, namespace, command):
        self.calls.append((pod_name, container, namespace, list(command)))
        return self.respond(list(command))


def utils_with(respond, timeout=1500):
    recorder = Recorder(respond)
    return AlluxioFileUtils("pod", "container", "ns", recorder, timeout), recorder


def ok(stdout):
    return lambda command: (stdout, "")


def test_load_metadata_without_executor_fails():
    tools = AlluxioFileUtils("", "", "")
    with pytest.raises(FileUtilsError):
        tools.load_metadata("/", True)


def test_sync_local_dir_without_executor_fails():
    tools = AlluxioFileUtils("", "", "")
    with pytest.raises(FileUtilsError):
        tools.sync_local_dir("/underFSStorage/test")


def _is_exist_exec(command):
    if NOT_EXIST in command[3]:
        raise FileUtilsError("does not exist", stdout="does not exist")
    if OTHER_ERR in command[3]:
        raise FileUtilsError("other error")
    return "", ""


def test_is_exist_not_exist():
    tools, _ = utils_with(_is_exist_exec)
    assert tools.is_exist(NOT_EXIST) is False


def test_is_exist_other_error():
    tools, _ = utils_with(_is_exist_exec)
    with pytest.raises(FileUtilsError, match="other error"):
        tools.is_exist(OTHER_ERR)


def test_is_exist_fine():
    tools, recorder = utils_with(_is_exist_exec)
    assert tools.is_exist(FINE) is True
    assert recorder.calls[0] == ("pod", "container", "ns", ["alluxio", "fs", "ls", FINE])


def _du_exec(command):
    arg = command[4]
    if EXEC_ERR in arg:
        raise FileUtilsError("exec-error", stdout="does not exist")
    if TOO_MANY_LINES in arg:
        return "1\n2\n3\n4\n", "1\n2\n3\n4\n"
    if DATA_NUM in arg:
        return "1\n2\t3", "1\n2\t3"
    if PARSE_ERR in arg:
        return "1\n1\tdududu\tbbb\t", "1\n1\t2\tbbb\t"
    return "first line!\n111\t222\t(%233)\t2333", ""


@pytest.mark.parametrize("arg", [EXEC_ERR, TOO_MANY_LINES, DATA_NUM, PARSE_ERR])
def test_du_errors(arg):
    tools, _ = utils_with(_du_exec)
    with pytest.raises(FileUtilsError):
        tools.du(arg)


def test_du_fine():
    tools, _ = utils_with(_du_exec)
    assert tools.du(FINE) == (111, 222, "%233")


def test_du_rejects_non_numeric_size():
    tools, _ = utils_with(ok("header\n1\tx\t(5%)\t9"))
    with pytest.raises(FileUtilsError):
        tools.du("/")


def _count_exec(command):
    arg = command[3]
    if EXEC_ERR in arg:
        raise FileUtilsError("exec-error", stdout="does not exist")
    if TOO_MANY_LINES in arg:
        return "1\n2\n3\n4\n", "1\n2\n3\n4\n"
    if DATA_NUM in arg:
        return "1\n2\t3", "1\n2\t3"
    if PARSE_ERR in arg:
        return "1\n1\tdududu\tbbb\t", "1\n1\t2\tbbb\t"
    return "first line!\n111\t222\t333", ""


@pytest.mark.parametrize("arg", [EXEC_ERR, TOO_MANY_LINES, DATA_NUM, PARSE_ERR])
def test_count_errors(arg):
    tools, _ = utils_with(_count_exec)
    with pytest.raises(FileUtilsError):
        tools.count(arg)


def test_count_fine():
    tools, _ = utils_with(_count_exec)
    assert tools.count(FINE) == (111, 222, 333)


def test_count_rejects_negative():
    tools, _ = utils_with(ok("File Count\n-1\t2\t3"))
    with pytest.raises(FileUtilsError):
        tools.count("/")


def test_error_message_carries_command_and_output():
    def fail(command):
        raise FileUtilsError("boom", stdout="out", stderr="err")

    tools, _ = utils_with(fail)
    with pytest.raises(FileUtilsError) as info:
        tools.mkdir("/data")
    message = str(info.value)
    assert "['alluxio', 'fs', 'mkdir', '/data']" in message
    assert "stdout out and stderr err" in message


def test_foreign_exception_is_wrapped():
    def fail(command):
        raise RuntimeError("connection refused")

    tools, _ = utils_with(fail)
    with pytest.raises(FileUtilsError, match="connection refused"):
        tools.report_summary()


def test_timeout():
    def slow(command):
        time.sleep(1)
        return "", ""

    tools, _ = utils_with(slow, timeout=0.05)
    with pytest.raises(FileUtilsError, match="timeout when executing"):
        tools.report_metrics()


def test_load_metadata_commands():
    tools, recorder = utils_with(ok(""))
    tools.load_metadata("/a", True)
    tools.load_metadata("/a", False)
    tools.load_metadata_without_timeout("/b")
    assert [call[3] for call in recorder.calls] == [
        ["alluxio", "fs", "-Dalluxio.user.file.metadata.sync.interval=0", "ls", "-R", "/a"],
        ["alluxio", "fs", "ls", "-R", "/a"],
        ["alluxio", "fs", "loadMetadata", "-R", "/b"],
    ]


def test_sync_local_dir_command():
    tools, recorder = utils_with(ok("4.0K\t/data"))
    tools.sync_local_dir("/underFSStorage/test")
    assert recorder.calls[0][3] == ["du", "-sh", "/underFSStorage/test"]


def test_query_metadata_info():
    tools, recorder = utils_with(ok("ufstotal: 1024"))
    assert tools.query_metadata_info(MetadataKey.UFS_TOTAL, "/pvc/meta.yaml") == "1024"
    assert recorder.calls[0][3] == ["bash", "-c", "sed -n '3p' /pvc/meta.yaml"]


def test_query_metadata_info_by_name():
    tools, recorder = utils_with(ok("filenum: 7"))
    assert tools.query_metadata_info("filenum", "/host/meta") == "7"
    assert recorder.calls[0][3][2] == "sed -n '4p' /host/meta"


def test_query_metadata_info_unknown_key():
    tools, _ = utils_with(ok(""))
    with pytest.raises(ValueError):
        tools.query_metadata_info("size", "/host/meta")


@pytest.mark.parametrize(
    "key, line, stdout, expected",
    [
        ("dataset", 1, "dataset: hbase", "hbase"),
        ("namespace", 2, "namespace: default", "default"),
        ("ufstotal", 3, "ufstotal: 2048", "2048"),
        ("filenum", 4, "filenum: 12", "12"),
    ],
)
def test_query_metadata_info_lines_per_key(key, line, stdout, expected):
    tools, recorder = utils_with(ok(stdout))
    assert tools.query_metadata_info(key, "/host/meta") == expected
    assert recorder.calls[0][3][2] == f"sed -n '{line}p' /host/meta"


def test_mount_command():
    tools, recorder = utils_with(ok(""))
    tools.mount("/hbase", "s3://bucket/x", {"a": "1", "b": "2"}, True, True)
    assert recorder.calls[0][3] == [
        "alluxio", "fs", "mount", "--readonly", "--shared",
        "--option", "a=1", "--option", "b=2", "/hbase", "s3://bucket/x",
    ]


def test_is_mounted():
    output = (
        "s3://bucket/x  on  /hbase  (s3, capacity=-1B, used=-1B, read-only)\n"
        "/underFSStorage  on  /  (local, capacity=1GB)\n"
    )
    tools, _ = utils_with(ok(output))
    assert tools.is_mounted("/hbase") is True
    assert tools.is_mounted("/spark") is False


def test_ready():
    good, _ = utils_with(ok("report"))
    assert good.ready() is True

    def fail(command):
        raise FileUtilsError("down")

    bad, _ = utils_with(fail)
    assert bad.ready() is False


def test_get_file_count():
    tools, recorder = utils_with(ok("Master.FilesCompleted  (Type: COUNTER, Value: 6,367,897)"))
    assert tools.get_file_count() == 6367897
    assert recorder.calls[0][3] == [
        "bash", "-c", "alluxio fsadmin report metrics | grep Master.FilesCompleted",
    ]


def test_get_file_count_without_number():
    tools, _ = utils_with(ok("nothing here"))
    with pytest.raises(FileUtilsError):
        tools.get_file_count()


def test_cached_state():
    output = "Alluxio cluster summary:\n    Used Capacity: 32MB\n    Free Capacity: 1GB\n"
    tools, _ = utils_with(ok(output))
    assert tools.cached_state() == 32 * 1024 * 1024


def test_cached_state_missing():
    tools, _ = utils_with(ok("Capacity: 1GB\n"))
    with pytest.raises(FileUtilsError, match="failed to find the cache"):
        tools.cached_state()


def test_clean_cache_and_get_conf_commands():
    tools, recorder = utils_with(ok("value\n"))
    tools.clean_cache("/")
    assert tools.get_conf("alluxio.master.hostname") == "value\n"
    assert tools.report_capacity() == "value\n"
    assert recorder.calls[0][3] == ["timeout", "-t", "60", "alluxio", "fs", "free", "-f", "/"]
    assert recorder.calls[1][3] == ["alluxio", "getConf", "alluxio.master.hostname"]
    assert recorder.calls[2][3] == ["alluxio", "fsadmin", "report", "capacity"]


@pytest.mark.parametrize(
    "text, expected",
    [
        ("10", 10),
        ("32MB", 32 * 1024**2),
        ("2GiB", 2 * 1024**3),
        ("1.5g", int(1.5 * 1024**3)),
        ("4 kb", 4096),
        ("1TB", 1024**4),
    ],
)
def test_ram_in_bytes(text, expected):
    assert ram_in_bytes(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "-1MB", "1.2.3GB", "10XB"])
def test_ram_in_bytes_invalid(text):
    with pytest.raises(ValueError):
        ram_in_bytes(text)