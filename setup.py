from setuptools import setup

with open("tapo/version.py") as f:
    exec(f.read())

setup(
    name="python-tapo",
    version=__version__,  # type: ignore # noqa: F821
    description="Python API for TP-Link Tapo smart plugs",
    url="https://github.com/python-tapo/python-tapo",
    author="",
    author_email="",
    license="GPLv3",
    packages=["tapo", "tapo.protocols", "tapo.transports"],
    install_requires=[
        "aiohttp",
        "asyncclick",
        "cryptography",
        "mashumaro",
        "orjson",
        "yarl",
    ],
    extras_require={
        "tests": ["pytest", "pytest-asyncio", "pytest-mock"],
    },
    python_requires=">=3.11",
    entry_points={"console_scripts": ["tapo=tapo.cli:cli"]},
    zip_safe=False,
)
