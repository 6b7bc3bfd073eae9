#!/usr/bin/python3
# Setup file for gitstatic
# Copyright (C) 2026 The gitstatic authors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]


setup(
    name="gitstatic",
    version="0.1.0",
    description="Static HTML snapshots of git repositories",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["gitstatic"],
    package_data={"": ["py.typed"]},
    install_requires=["pygments"],
    extras_require={"test": tests_require},
    entry_points={"console_scripts": ["gitstatic=gitstatic.cli:_main"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
