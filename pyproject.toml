[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kernsim"
version = "0.1.0"
description = "Models of a small x86 teaching kernel: descriptors and paging, ELF headers, locks, a free-list heap, a shell parser and wc"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "kernel",
    "operating-system",
    "x86",
    "paging",
    "page-tables",
    "elf",
    "simulation",
    "education",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
    "Topic :: System :: Operating System Kernels",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
kernsim-wc = "kernsim.wc:main"

[tool.hatch.build.targets.wheel]
packages = ["kernsim"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
