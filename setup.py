from setuptools import find_packages, setup

setup(
    name="oled-rpc",
    version="0.1.0",
    description="JSON-RPC service for writing text to an I2C OLED display",
    packages=find_packages(include=["oled_rpc", "oled_rpc.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "numpy>=1.26",
        "Pillow>=10.1",
        "pydantic>=2.5",
        "uvicorn>=0.27",
    ],
    extras_require={
        "hardware": ["luma.oled>=3.13"],
        "test": ["pytest", "pytest-asyncio", "httpx", "luma.oled>=3.13"],
    },
    entry_points={
        "console_scripts": ["oled-rpc=oled_rpc.main:main"],
    },
)
