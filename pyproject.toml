[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sunxi-tools"
version = "0.1.0"
description = "Tools for Allwinner sunxi SoCs: NAND image building, DRAM register info and Phoenix image inspection"
requires-python = ">=3.10"
dependencies = []
keywords = ["allwinner", "sunxi", "nand", "bch", "dram", "phoenix", "embedded"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Hardware",
    "Topic :: Software Development :: Embedded Systems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sunxi-nand-image-builder = "sunxi_tools.nand_image:main"
sunxi-meminfo = "sunxi_tools.meminfo:main"
phoenix-info = "sunxi_tools.phoenix:main"

[tool.hatch.build.targets.wheel]
packages = ["sunxi_tools"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
