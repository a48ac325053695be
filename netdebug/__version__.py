"""Version information for netdebug."""

__version__ = "1.0.0"
__version_info__ = (1, 0, 0)

# Release information
__author__ = "NetDebug Team"
__license__ = "MIT"
__description__ = "Network monitoring debug tool for K3s/Kubernetes deployments"
