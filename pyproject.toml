[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "detkit"
version = "0.1.0"
description = "Pre- and post-processing for YOLO-family detectors, pose estimation, instance segmentation and video matting"
requires-python = ">=3.10"
keywords = [
    "object detection",
    "yolo",
    "nms",
    "pose estimation",
    "instance segmentation",
    "matting",
    "computer vision",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "numpy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["detkit"]

[tool.hatch.build.targets.sdist]
include = ["detkit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
