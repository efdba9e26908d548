#!/usr/bin/env python
# -*- encoding: utf-8 -*-
import re
from os.path import dirname, join

from setuptools import find_packages, setup


def read(*names, **kwargs):
    with open(
        join(dirname(__file__), *names), encoding=kwargs.get("encoding", "utf8")
    ) as f:
        return f.read()


def find_version(*file_paths):
    contents = read(*file_paths)
    match = re.search(r"^__version__ = ['\"]([^'\"]*)['\"]", contents, re.M)
    if match:
        return match.group(1)
    raise RuntimeError("Unable to find version string.")


setup(
    name="armprovider",
    python_requires=">=3.8",
    version=find_version("src", "armprovider", "__init__.py"),
    license="MIT",
    description="Credential bootstrap and resource provider registration for AzureRM",
    long_description="""`armprovider` is the configuration step of an Azure Resource
Manager infrastructure provider. It validates service principal credentials,
authenticates with Azure AD, and registers every Azure resource provider the
provider may use with the subscription, once per process, even when invoked
concurrently.""",
    long_description_content_type="text/markdown",
    author="Pete Kazmier",
    author_email="opensource@fidelity.com",
    packages=find_packages("src"),
    package_dir={"": "src"},
    include_package_data=True,
    zip_safe=False,
    classifiers=[
        # complete classifier list: http://pypi.python.org/pypi?%3Aaction=list_classifiers
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: Unix",
        "Operating System :: POSIX",
        "Operating System :: Microsoft :: Windows",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Utilities",
    ],
    keywords=["azure", "azurerm", "provider"],
    install_requires=[
        "azure-core",
        "azure-identity",
        "azure-mgmt-resource<26",
        "PyYAML>=3.10",
    ],
    tests_require=["pytest", "pytest-mock"],
    extras_require={"test": ["pytest", "pytest-mock"]},
    entry_points={
        "console_scripts": [
            "armprovider = armprovider.cli:main",
        ]
    },
)
