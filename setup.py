#!/usr/bin/env python3
"""kube-config-updater - Setup"""

from setuptools import setup, find_packages

with open("requirements.txt") as f:
    requirements = f.read().splitlines()

setup(
    name="kube-config-updater",
    version="1.0.0",
    description="Fetch kubeconfigs from k3s servers over SSH and merge them into ~/.kube/config",
    author="kube-config-updater Team",
    packages=find_packages(exclude=["tests*"]),
    install_requires=requirements,
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "kube-config-updater=kubeconfig_updater.main:main",
        ],
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
