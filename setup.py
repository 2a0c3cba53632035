# -*- coding: utf-8 -*-

# This code is part of ChronoPhoton.
#
# (C) Copyright IBM 2024.
#
# This code is licensed under the Apache License, Version 2.0. You may
# obtain a copy of this license in the LICENSE.txt file in the root directory
# of this source tree or at http://www.apache.org/licenses/LICENSE-2.0.
#
# Any modifications or derivative works of this code must retain this
# copyright notice, and modified files need to carry a notice indicating
# that they have been altered from the originals.

import os
import setuptools

requirements = [
    "numpy>=1.17",
    "scipy>=1.4",
    "qiskit>=1.0",
    "arraylias",
]

jax_extras = ["jax>=0.4.1", "jaxlib>=0.4.1"]

test_extras = ["pytest"]

PACKAGES = setuptools.find_packages(exclude=["test*"])

version_path = os.path.abspath(
    os.path.join(os.path.dirname(__file__), "chronophoton", "VERSION.txt")
)

with open(version_path, "r") as fd:
    version = fd.read().rstrip()

README_PATH = os.path.join(os.path.abspath(os.path.dirname(__file__)), "README.md")
with open(README_PATH) as readme_file:
    README = readme_file.read()

setuptools.setup(
    name="chronophoton",
    version=version,
    packages=PACKAGES,
    description="Time evolution of periodically driven open quantum systems",
    long_description=README,
    long_description_content_type="text/markdown",
    author="ChronoPhoton Development Team",
    license="Apache 2.0",
    classifiers=[
        "Environment :: Console",
        "License :: OSI Approved :: Apache Software License",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Operating System :: Microsoft :: Windows",
        "Operating System :: MacOS",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering",
    ],
    keywords="quantum floquet lindblad dynamics",
    install_requires=requirements,
    include_package_data=True,
    package_data={"chronophoton": ["VERSION.txt"]},
    python_requires=">=3.9",
    extras_require={"jax": jax_extras, "test": test_extras},
    zip_safe=False,
)
