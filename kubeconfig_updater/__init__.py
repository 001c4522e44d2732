"""kube-config-updater - keep ~/.kube/config in sync with a fleet of k3s servers"""

__version__ = "1.0.0"
