[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lidarvio"
version = "0.1.0"
description = "LiDAR scan-line feature extraction and direct photometric tools for LiDAR-inertial-visual odometry"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "lidar",
    "odometry",
    "point cloud",
    "feature extraction",
    "visual odometry",
    "photometric",
    "ekf",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["lidarvio"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
