[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ovnkube-util"
version = "0.1.0"
description = "Helpers for driving OVS and OVN tools from a Kubernetes network controller"
requires-python = ">=3.10"
dependencies = []
keywords = ["ovn", "ovs", "openvswitch", "kubernetes", "networking", "gateway", "network-policy", "iptables"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Operating System :: Microsoft :: Windows",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ovnkube_util"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
