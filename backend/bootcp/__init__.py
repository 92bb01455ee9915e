"""bootcp - control plane engine for bare-metal node provisioning."""

__version__ = "0.1.0"
