[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sliceworker"
version = "1.18.0"
description = "Worker-side reconciliation logic for application slices spanning multiple clusters"
requires-python = ">=3.10"
keywords = ["kubernetes", "operator", "multi-cluster", "service-mesh", "reconciler"]
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
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["sliceworker"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
