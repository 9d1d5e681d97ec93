"""
This script configures the installation of the 'sshlaunch' Python package using setuptools.
Defines the package metadata, dependencies, and entry points for the command-line interface (CLI).
The CLI command 'sshlaunch' is linked to the 'cli.sshlaunch' function, enabling workers to be
started on remote hosts over SSH from configured targets.

Run 'pip install -e .' to install the package in editable mode for development purposes.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="sshlaunch",
    version="1.0.0",
    description="Bootstrap worker processes on remote hosts over SSH",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires='>=3.9',
    install_requires=[
        'paramiko',
        'cryptography',
        'omegaconf',
        'PyYAML',
        'click',
        'rich'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': ['sshlaunch=sshlaunch.cli:sshlaunch'],
    },
)
