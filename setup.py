"""Build and install the wheeltelem package."""

from setuptools import setup, find_packages

setup(
    name="wheeltelem",
    version="0.1.0",
    description="Wheel telemetry log decoder with derived channels",
    package_dir={"": "python"},
    packages=find_packages("python"),
    python_requires=">=3.9",
    install_requires=["numpy"],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": ["wheeltelem = wheeltelem.cli:main"],
    },
)
