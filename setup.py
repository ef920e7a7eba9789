# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

from os import path

from setuptools import find_packages, setup

PACKAGE_NAME = "pyrim"
PACKAGE_VERSION = "0.1.0"

path_here = path.abspath(path.dirname(__file__))

with open(path.join(path_here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name=PACKAGE_NAME,
    version=PACKAGE_VERSION,
    description="Tools to fetch Reference Integrity Manifests and extract their reference values",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["pyrim", "pyrim.*"]),
    entry_points={
        "console_scripts": [
            "rimtool=pyrim.cli.main:main",
            "fetch-rim=pyrim.cli.fetch_rim:main",
        ],
    },
    python_requires=">=3.8",
    install_requires=[
        "cryptography>=44",
        "httpx",
        "cbor2>=5.4,<6",
        "pycose>=1.1.0",
        "loguru",
    ],
    extras_require={
        "test": ["pytest"],
    },
    license="MIT License",
    author="pyrim developers",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
    ],
)
