from setuptools import find_packages, setup

setup(
    name="build-controller",
    version="0.1.0",
    packages=find_packages(
        include=[
            "build_common",
            "build_common.*",
            "build_persistence",
            "build_persistence.*",
            "build_controller",
            "build_controller.*",
            "build_server",
            "build_server.*",
            "build_admin",
            "build_admin.*",
        ]
    ),
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "aiosqlite>=0.19.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "build-controller=build_controller.__main__:main",
            "build-server=build_server.app:main",
            "build-admin=build_admin.cli:cli",
        ],
    },
    python_requires=">=3.11",
)
