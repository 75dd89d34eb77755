"""Fuse and init-users parts of the Alluxio values."""

from __future__ import annotations

import logging

from .optimization import optimize_default_fuse
from .spec import AlluxioRuntime, Dataset, EngineContext, User
from .values import Alluxio, Fuse, InitUsers
from .volumes import transform_resources_for_fuse

logger = logging.getLogger(__name__)

FLUID_FUSE_BALLOON_KEY = "fluid.io/fuse-balloon"
FLUID_FUSE_BALLOON_VALUE = "true"
DEFAULT_PULL_POLICY = "IfNotPresent"


def transform_fuse(
    engine: EngineContext, runtime: AlluxioRuntime, dataset: Dataset, value: Alluxio
) -> None:
    """Fill in the fuse section of the values."""
    spec = runtime.fuse
    value.fuse = Fuse()
    fuse = value.fuse

    fuse.image = spec.image or engine.fuse_image
    fuse.image_tag = spec.image_tag or engine.fuse_image_tag
    fuse.image_pull_policy = spec.image_pull_policy or DEFAULT_PULL_POLICY

    if spec.properties:
        fuse.properties = dict(spec.properties)
    fuse.env = dict(spec.env)

    fuse.mount_path = engine.mount_path
    fuse.env["MOUNT_POINT"] = fuse.mount_path

    optimize_default_fuse(engine, runtime, value)

    if dataset.owner is not None:
        owner = dataset.owner
        fuse.args[-1] = ",".join([fuse.args[-1], f"uid={owner.uid},gid={owner.gid}"])
    else:
        value.properties["alluxio.fuse.user.group.translation.enabled"] = "true"

    # Let every user, root included, access the mount.
    if "allow_" not in fuse.args[-1]:
        fuse.args[-1] = ",".join([fuse.args[-1], "allow_other"])

    fuse.node_selector = {}
    if spec.global_mode:
        fuse.global_mode = True
        if spec.node_selector:
            fuse.node_selector = dict(spec.node_selector)
        fuse.node_selector[FLUID_FUSE_BALLOON_KEY] = FLUID_FUSE_BALLOON_VALUE
        logger.info("Enable Fuse's global mode")
    else:
        fuse.node_selector[engine.common_label_name] = "true"
        logger.info("Disable Fuse's global mode")

    fuse.host_network = True
    fuse.enabled = True

    transform_resources_for_fuse(engine, runtime, value)


def _init_user_env(run_as: User) -> str:
    return f"{run_as.uid}:{run_as.user_name}:{run_as.gid},{run_as.gid}:{run_as.group_name}"


def _init_tier_paths_env(runtime: AlluxioRuntime) -> str:
    return ":".join(path for level in runtime.tieredstore for path in level.paths)


def transform_init_users(engine: EngineContext, runtime: AlluxioRuntime, value: Alluxio) -> None:
    """Set up the init-users container when the runtime runs as a given user."""
    value.init_users = InitUsers(enabled=False)

    run_as = runtime.run_as
    if run_as is not None:
        value.user = int(run_as.uid) if run_as.uid is not None else 0
        value.group = int(run_as.gid) if run_as.gid is not None else 0
        image, sep, tag = engine.init_image.partition(":")
        if not sep:
            raise ValueError(f"init image {engine.init_image!r} has no tag")
        value.init_users = InitUsers(
            enabled=True,
            dir=engine.init_user_dir,
            env_users=_init_user_env(run_as),
            env_tiered_paths=_init_tier_paths_env(runtime),
            image=image,
            image_tag=tag.split(":")[0],
            image_pull_policy=DEFAULT_PULL_POLICY,
        )

    # The runtime's own settings take priority over the defaults.
    overrides = runtime.init_users
    if overrides.image:
        value.init_users.image = overrides.image
    if overrides.image_tag:
        value.init_users.image_tag = overrides.image_tag
    if overrides.image_pull_policy:
        value.init_users.image_pull_policy = overrides.image_pull_policy

    logger.info("Check InitUsers: %s", value.init_users)