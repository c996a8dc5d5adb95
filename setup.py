# Copyright 2025 Canonical Ltd.  This software is licensed under the
# GNU Affero General Public License version 3 (see the file LICENSE).

"""Setuptools installer for the charm store."""

from os.path import dirname, join

from setuptools import find_packages, setup


def read(filename):
    """Return the whitespace-stripped content of `filename`."""
    path = join(dirname(__file__), filename)
    with open(path, "r") as fin:
        return fin.read().strip()


setup(
    name="charmstore",
    version="5.0.0",
    license="AGPLv3",
    description="Charm and bundle store authorization server",
    long_description=read("README.rst"),
    author="Charm Store Developers",
    packages=find_packages(where="src", exclude=["tests", "tests.*"]),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "aiofiles",
        "aiohttp",
        "asyncpg",
        "fastapi<0.137",
        "macaroonbakery",
        "pydantic>=2",
        "pymacaroons",
        "python-json-logger",
        "PyYAML",
        "SQLAlchemy[asyncio]>=2",
        "starlette",
        "structlog",
        "uvicorn",
        "yarl",
    ],
    extras_require={
        "test": [
            "aiohttp<3.14",
            "aioresponses",
            "aiosqlite",
            "httpx",
            "pytest",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "charmd = charmstoreapi.main:run",
        ]
    },
    data_files=[
        ("/etc/charmstore", ["etc/charmstore/charmd.yaml"]),
    ],
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: GNU Affero General Public License v3",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development",
    ],
)
