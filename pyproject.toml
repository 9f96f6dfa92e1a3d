[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bbhash"
version = "0.1.0"
description = "Minimal perfect hash functions built from a cascade of collision-free bit arrays"
requires-python = ">=3.10"
dependencies = []
keywords = ["minimal perfect hash", "mphf", "hashing", "bit vector", "rank"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bbhash-bench = "bbhash.bench:main"
bbhash-example = "bbhash.examples:main"
bbhash-example-custom-hash = "bbhash.examples:main_custom_hash"

[tool.hatch.build.targets.wheel]
packages = ["bbhash"]

[tool.pytest.ini_options]
addopts = "-ra"
