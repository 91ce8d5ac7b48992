# Package installation script

from setuptools import setup, find_namespace_packages

setup(
    name="telemetry_bridge",
    version="0.1.0",
    packages=find_namespace_packages(where="src", include=["telemetry_bridge*"]),
    package_dir={"": "src"},
    entry_points={
        "console_scripts": [
            "telemetry_bridge=telemetry_bridge.__main__:main",
        ],
    },
    python_requires=">=3.10",
    install_requires=[
        "fastapi",
        "hypercorn",
        "pyyaml",
        "aiomqtt>=2.0",
        "pydantic>=2",
        "psutil",
        "python-multipart",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx",
        ],
    },
)
