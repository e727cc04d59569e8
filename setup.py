import sys
from pathlib import Path

from setuptools import setup, find_namespace_packages

if sys.version_info[0:2] < (3, 8):
    raise RuntimeError("This package requires Python 3.8+.")

setup(
    name="moat-lib-wire",
    version="0.1.0",
    packages=find_namespace_packages(include=["moat.*"]),
    url="https://github.com/M-o-a-T/moat",
    license="MIT",
    author="Matthias Urlichs",
    author_email="<matthias@urlichs.de>",
    description="A streaming MessagePack engine with caller-supplied buffers",
    long_description=Path(__file__).with_name("README.rst").read_text(encoding="utf-8"),
    install_requires=["anyio>=4.0"],
    extras_require={
        "test": ["pytest", "trio>=0.23", "msgpack>=1.0"],
    },
    python_requires=">=3.10",
    classifiers=[
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Framework :: AsyncIO",
        "Framework :: Trio",
        "License :: OSI Approved",
    ],
)
