#!/usr/bin/env python3
"""
Setup script for smsbridge.
"""

from setuptools import setup, find_packages

setup(
    name="smsbridge",
    version="0.1.0",
    description="Forward SMS received on a GSM modem to email, and send SMS requested by email",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "pyserial>=3.5",
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "pystache>=0.6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-timeout>=2.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "smsbridge=smsbridge.cli:main",
        ],
    },
    keywords=["sms", "email", "gsm", "modem", "at-commands", "imap", "smtp"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: System Administrators",
        "Topic :: Communications :: Email",
        "Topic :: Communications :: Telephony",
        "Operating System :: POSIX :: Linux",
        "License :: OSI Approved :: MIT License",
    ],
)
