"""Local k3d + Argo CD environment for the platform-learning project."""

__version__ = "0.1.0"
