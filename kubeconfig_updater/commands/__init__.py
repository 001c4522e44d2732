"""kube-config-updater CLI commands"""
