[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "p2poolsim"
version = "0.1.0"
description = "Discrete-event simulation of a P2Pool-style share chain network"
requires-python = ">=3.10"
dependencies = []
keywords = ["p2pool", "simulation", "share chain", "dag", "discrete-event", "mining"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Environment :: Console",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
p2poolsim = "p2poolsim.manager:main"

[tool.hatch.build.targets.wheel]
packages = ["p2poolsim"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
