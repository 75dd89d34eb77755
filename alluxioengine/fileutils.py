"""Commands run inside the Alluxio master container, and parsing of their output."""

from __future__ import annotations

import enum
import logging
import re
import threading
import time
from collections.abc import Callable, Mapping, Sequence

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1500.0

Executor = Callable[[str, str, str, Sequence[str]], "tuple[str, str]"]

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_UINT64_MAX = 2**64 - 1

_SIGNED = re.compile(r"[+-]?\d+")
_UNSIGNED = re.compile(r"\d+")
_DIGITS = re.compile(r"\d+")
_RAM_SIZE = re.compile(r"^(\d+(?:\.\d+)*) ?([kKmMgGtTpP])?[iI]?[bB]?$")
_BINARY_UNITS = {
    "k": 1024,
    "m": 1024**2,
    "g": 1024**3,
    "t": 1024**4,
    "p": 1024**5,
}


class FileUtilsError(Exception):
    """A command in the container failed or its output could not be parsed.

    ``stdout`` and ``stderr`` hold what the command printed, where known.
    """

    def __init__(self, message: str, *, stdout: str = "", stderr: str = "") -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr


class MetadataKey(enum.Enum):
    """Keys of the metadata info file, in the order of its lines."""

    DATASET_NAME = "dataset"
    NAMESPACE = "namespace"
    UFS_TOTAL = "ufstotal"
    FILE_NUM = "filenum"

    @property
    def line(self) -> int:
        return list(MetadataKey).index(self) + 1


def ram_in_bytes(text: str) -> int:
    """Parse a human-readable memory size such as ``32MB`` into bytes (binary units)."""
    match = _RAM_SIZE.match(text)
    if match is None:
        raise ValueError(f"invalid size: '{text}'")
    try:
        size = float(match.group(1))
    except ValueError as err:
        raise ValueError(f"invalid size: '{text}'") from err
    unit = (match.group(2) or "").lower()
    multiplier = _BINARY_UNITS.get(unit, 1)
    return int(size * multiplier)


def _parse_int(text: str, *, unsigned: bool = False) -> int:
    pattern = _UNSIGNED if unsigned else _SIGNED
    if not pattern.fullmatch(text):
        raise FileUtilsError(f"invalid syntax parsing {text!r} as an integer")
    value = int(text)
    low, high = (0, _UINT64_MAX) if unsigned else (_INT64_MIN, _INT64_MAX)
    if not low <= value <= high:
        raise FileUtilsError(f"value out of range parsing {text!r}")
    return value


def _no_executor(pod_name: str, container: str, namespace: str, command: Sequence[str]) -> tuple[str, str]:
    raise FileUtilsError(
        f"no executor configured to run {list(command)} in pod {pod_name!r} "
        f"container {container!r} namespace {namespace!r}"
    )


class AlluxioFileUtils:
    """Runs Alluxio shell commands in one container of one pod.

    ``executor(pod_name, container, namespace, command)`` runs a command and
    returns ``(stdout, stderr)``; on failure it raises, preferably a
    :class:`FileUtilsError` carrying the command's output.
    """

    def __init__(
        self,
        pod_name: str,
        container: str,
        namespace: str,
        executor: Executor | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.pod_name = pod_name
        self.container = container
        self.namespace = namespace
        self._executor = executor or _no_executor
        self.timeout = timeout

    # -- running commands ---------------------------------------------------

    def _exec_without_timeout(self, command: list[str], verbose: bool) -> tuple[str, str]:
        try:
            stdout, stderr = self._executor(self.pod_name, self.container, self.namespace, command)
        except FileUtilsError as err:
            logger.info("Command %s stdout: %s", command, err.stdout)
            logger.error("Command %s failed: %s (%s)", command, err, err.stderr)
            raise
        except Exception as err:
            logger.error("Command %s failed: %s", command, err)
            raise FileUtilsError(str(err)) from err
        if verbose:
            logger.info("Command %s stdout: %s", command, stdout)
        return stdout, stderr

    def _exec(self, command: list[str], verbose: bool) -> tuple[str, str]:
        outcome: dict[str, object] = {}

        def run() -> None:
            try:
                outcome["value"] = self._exec_without_timeout(command, verbose)
            except BaseException as err:  # handed back to the caller below
                outcome["error"] = err

        worker = threading.Thread(target=run, daemon=True)
        worker.start()
        worker.join(self.timeout)
        if worker.is_alive():
            raise FileUtilsError(f"timeout when executing {command}")
        if "error" in outcome:
            raise outcome["error"]  # type: ignore[misc]
        logger.info("execute in time: %s", command)
        return outcome["value"]  # type: ignore[return-value]

    def _run(self, command: list[str], *, verbose: bool = False, timeout: bool = True) -> str:
        runner = self._exec if timeout else self._exec_without_timeout
        try:
            stdout, _ = runner(command, verbose)
        except FileUtilsError as err:
            raise FileUtilsError(
                f"execute command {command} with expectedErr: {err} "
                f"stdout {err.stdout} and stderr {err.stderr}",
                stdout=err.stdout,
                stderr=err.stderr,
            ) from err
        return stdout

    # -- file system --------------------------------------------------------

    def is_exist(self, alluxio_path: str) -> bool:
        """Whether the path exists in Alluxio."""
        command = ["alluxio", "fs", "ls", alluxio_path]
        try:
            self._exec(command, True)
        except FileUtilsError as err:
            if "does not exist" in err.stdout:
                return False
            raise FileUtilsError(
                f"execute command {command} with expectedErr: {err} "
                f"stdout {err.stdout} and stderr {err.stderr}",
                stdout=err.stdout,
                stderr=err.stderr,
            ) from err
        return True

    def report_summary(self) -> str:
        """Output of ``alluxio fsadmin report summary``."""
        return self._run(["alluxio", "fsadmin", "report", "summary"])

    def load_metadata_without_timeout(self, alluxio_path: str) -> None:
        """Load metadata recursively, waiting as long as it takes."""
        command = ["alluxio", "fs", "loadMetadata", "-R", alluxio_path]
        start = time.monotonic()
        try:
            stdout = self._run(command, timeout=False)
        finally:
            logger.info("Async Load Metadata took %.3fs to run", time.monotonic() - start)
        logger.info("Async Load Metadata finished: %s", stdout)

    def load_metadata(self, alluxio_path: str, sync: bool) -> None:
        """List the path recursively, forcing a metadata sync when ``sync`` is set."""
        if sync:
            command = [
                "alluxio", "fs", "-Dalluxio.user.file.metadata.sync.interval=0",
                "ls", "-R", alluxio_path,
            ]
        else:
            command = ["alluxio", "fs", "ls", "-R", alluxio_path]
        start = time.monotonic()
        try:
            self._run(command)
        finally:
            logger.info("Load MetaData took %.3fs to run", time.monotonic() - start)

    def query_metadata_info(self, key: MetadataKey | str, filename: str) -> str:
        """Read one entry of a metadata info file."""
        key = MetadataKey(key)
        script = f"sed -n '{key.line}p' {filename}"
        stdout = self._run(["bash", "-c", script])
        return stdout.removeprefix(f"{key.value}: ")

    def mkdir(self, alluxio_path: str) -> None:
        """Create a directory in Alluxio."""
        self._run(["alluxio", "fs", "mkdir", alluxio_path])

    def mount(
        self,
        alluxio_path: str,
        ufs_path: str,
        options: Mapping[str, str] | None = None,
        read_only: bool = False,
        shared: bool = False,
    ) -> None:
        """Mount an under storage at ``alluxio_path``."""
        command = ["alluxio", "fs", "mount"]
        if read_only:
            command.append("--readonly")
        if shared:
            command.append("--shared")
        for key, value in (options or {}).items():
            command += ["--option", f"{key}={value}"]
        command += [alluxio_path, ufs_path]
        self._run(command)

    def is_mounted(self, alluxio_path: str) -> bool:
        """Whether some under storage is mounted at ``alluxio_path``."""
        stdout = self._run(["alluxio", "fs", "mount"], verbose=True)
        for line in stdout.split("\n"):
            fields = line.split()
            logger.info("parse output of isMounted for %s: %s", alluxio_path, fields)
            if len(fields) > 2 and fields[2] == alluxio_path:
                return True
        return False

    def ready(self) -> bool:
        """Whether ``alluxio fsadmin report`` succeeds."""
        try:
            self._exec(["alluxio", "fsadmin", "report"], True)
        except FileUtilsError:
            return False
        return True

    def du(self, alluxio_path: str) -> tuple[int, int, str]:
        """Under-storage size, cached size and cached percentage of a path."""
        stdout = self._run(["alluxio", "fs", "du", "-s", alluxio_path])
        lines = stdout.split("\n")
        if len(lines) != 2:
            raise FileUtilsError(f"failed to parse {lines} in Du method")
        data = lines[1].split()
        if len(data) != 4:
            raise FileUtilsError(f"failed to parse {data} in Du method")
        ufs = _parse_int(data[0])
        cached = _parse_int(data[1])
        percentage = data[2].lstrip("(").rstrip(")")
        return ufs, cached, percentage

    def count(self, alluxio_path: str) -> tuple[int, int, int]:
        """File count, folder count and total bytes under a path."""
        stdout = self._run(["alluxio", "fs", "count", alluxio_path], timeout=False)
        lines = stdout.split("\n")
        if len(lines) != 2:
            raise FileUtilsError(f"failed to parse {lines} in Count method")
        data = lines[1].split()
        if len(data) != 3:
            raise FileUtilsError(f"failed to parse {data} in Count method")
        files, folders, total = (_parse_int(item, unsigned=True) for item in data)
        return files, folders, total

    def get_file_count(self) -> int:
        """Number of completed files, read from the master's metrics."""
        pipeline = " ".join(
            ["alluxio", "fsadmin", "report", "metrics", "|", "grep", "Master.FilesCompleted"]
        )
        stdout = self._run(["bash", "-c", pipeline], timeout=False)
        # e.g. Master.FilesCompleted  (Type: COUNTER, Value: 6,367,897)
        match = _DIGITS.search(stdout.replace(",", ""))
        return _parse_int(match.group(0) if match else "")

    def report_metrics(self) -> str:
        """Output of ``alluxio fsadmin report metrics``."""
        return self._run(["alluxio", "fsadmin", "report", "metrics"])

    def report_capacity(self) -> str:
        """Output of ``alluxio fsadmin report capacity``."""
        return self._run(["alluxio", "fsadmin", "report", "capacity"])

    def cached_state(self) -> int:
        """Used cache capacity in bytes."""
        stdout = self._run(["alluxio", "fsadmin", "report"])
        cached: int | None = None
        for line in stdout.split("\n"):
            if "Used Capacity:" not in line:
                continue
            values = line.split()
            if not values:
                raise FileUtilsError(f"failed to parse {line}")
            try:
                cached = ram_in_bytes(values[-1])
            except ValueError as err:
                raise FileUtilsError(str(err)) from err
        if cached is None:
            raise FileUtilsError(f"failed to find the cache in output {stdout}")
        return cached

    def clean_cache(self, path: str) -> None:
        """Free the cache of a path, giving up after 60 seconds."""
        self._run(["timeout", "-t", "60", "alluxio", "fs", "free", "-f", path])

    def get_conf(self, key: str) -> str:
        """Value of a configuration key as reported by ``alluxio getConf``."""
        return self._run(["alluxio", "getConf", key])

    def sync_local_dir(self, path: str) -> None:
        """Walk a local directory with ``du -sh`` so mounted NAS metadata is fresh."""
        start = time.monotonic()
        try:
            self._run(["du", "-sh", path], timeout=False)
        finally:
            logger.info("du -sh %s took %.3fs", path, time.monotonic() - start)