import re
import subprocess
from pathlib import Path

from setuptools import find_packages, setup


def get_version() -> str:
    try:
        output = subprocess.run(
            [
                "git", "--git-dir", Path(__file__).parent / ".git",
                "describe", "--tags"
            ],
            capture_output=True
        ).stdout.decode().strip().split("-")
    except FileNotFoundError:
        return "0.dev"
    # Output is either v1.3.5 if the tag points to the current commit or
    # something like this v1.3.5-11-g3b467ad if it doesn't

    version = ".".join(re.findall(r"\d+", output[0])) or "0.dev"
    if len(output) > 1:
        return f"{version}+{output[-1]}"
    else:
        return version


setup(
    name="parley",
    version=get_version(),
    packages=find_packages(include=["parley", "parley.*"]),
    py_modules=["main"],
    license="GPLv3",
    author="Parley contributors",
    author_email="parley@example.org",
    description="Language exchange matchmaking and relay server",
    python_requires=">=3.9",
    install_requires=[
        "aiocron",
        "aiohttp",
        "docopt",
        "humanize",
        "prometheus_client",
        "proxy-protocol",
        "pyyaml",
        "uvloop; sys_platform != 'win32'",
    ],
    extras_require={
        "test": [
            "hypothesis",
            "pytest",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    include_package_data=True
)
