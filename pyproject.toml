[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "alluxioengine"
version = "0.6.0"
description = "Builds Alluxio cache-runtime chart values from dataset and runtime specs, and drives Alluxio shell operations through a pluggable executor."
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["alluxio", "cache", "dataset", "kubernetes", "helm", "distributed storage"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["alluxioengine"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
