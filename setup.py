#!/usr/bin/env python

from setuptools import setup

install_requires = [
    "requests>=2.27.1",
    "PyYAML>=6.0.1",
    "pydantic>=2.0",
    "structlog>=23.1",
    "SQLAlchemy>=2.0",
    "sentry-sdk>=1.30",
]

tests_requires = [
    "freezegun>=1.2",
    "pytest>=7.1.2",
]

setup(
    name="lustre-quota-backend",
    version="0.1.0",
    author="HPC Operations Team",
    license="MIT",
    description="Lustre quota reconciliation and quota application review for HPC clusters.",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.9",
    install_requires=install_requires,
    tests_require=tests_requires,
    extras_require={"test": tests_requires},
    packages=[
        "lustre_quota_backend",
        "lustre_quota_backend.backend",
        "lustre_quota_backend.common",
    ],
    entry_points={
        "console_scripts": [
            "lustre-quota-backend = lustre_quota_backend.main:main",
        ],
    },
    classifiers=[
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
    ],
)
