[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "schemarecommender"
version = "0.1.0"
description = "Build SchemaTree models from entity property sets and serve property recommendations over HTTP"
requires-python = ">=3.10"
dependencies = []
keywords = ["schematree", "recommender", "wikidata", "properties", "fp-tree"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Information Analysis",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
schemarecommender = "schemarecommender.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["schemarecommender"]

[tool.pytest.ini_options]
addopts = "-ra"
