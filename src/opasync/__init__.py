"""opasync - Replicate Kubernetes resources into Open Policy Agent."""

__version__ = "0.1.0"
