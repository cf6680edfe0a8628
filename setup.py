# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="treesync",
    version="0.1.0",
    description="Hierarchical file/folder tree mutation and synchronization engine with a JSON document CLI",
    python_requires=">=3.9",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["treesync*"]),
    package_data={
        "treesync.interface.locales": ["*.json"],
    },
    install_requires=[],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        'console_scripts': [
            'treesync=treesync.main:main',
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
