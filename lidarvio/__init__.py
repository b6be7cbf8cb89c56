"""LiDAR scan-line feature extraction, visual map points, patch warping and photometric EKF tools."""

__version__ = "0.1.0"