from setuptools import setup

with open("netupgrade/version.py") as f:
    exec(f.read())

setup(
    name="python-netupgrade",
    version=__version__,  # type: ignore # noqa: F821
    description="Orchestrate OS upgrades of network devices over their HTTP API",
    author="",
    author_email="",
    license="GPLv3",
    packages=["netupgrade", "netupgrade.cli"],
    install_requires=[
        "aiohttp>=3.9",
        "asyncclick>=8.1.7",
        "mashumaro>=3.11",
        "orjson>=3.9",
        "rich>=13",
        "yarl>=1.9",
    ],
    extras_require={
        "test": [
            "pytest>=7",
            "pytest-asyncio>=0.24",
            "pytest-mock>=3.12",
        ],
    },
    python_requires=">=3.11",
    entry_points={"console_scripts": ["netupgrade=netupgrade.cli:cli"]},
    zip_safe=False,
)
