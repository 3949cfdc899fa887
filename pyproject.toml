[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nsvpn"
version = "0.1.0"
description = "Run applications through VPN connections inside Linux network namespaces"
requires-python = ">=3.10"
keywords = [
    "vpn",
    "network-namespace",
    "openvpn",
    "openfortivpn",
    "iptables",
    "nftables",
    "mullvad",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "requests",
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["nsvpn"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
