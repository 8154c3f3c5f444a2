from setuptools import setup, find_packages

setup(
    name="lime_remote",
    version="0.1.0",
    description="LimeSurvey RemoteControl JSON-RPC client with session renewal",
    author="lime_remote Team",
    packages=find_packages(include=["lime_remote", "lime_remote.*"]),
    install_requires=[
        "requests>=2.28.0",
        "opentelemetry-api>=1.14.0",
        "opentelemetry-sdk>=1.14.0",
        "opentelemetry-exporter-otlp>=1.14.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov",
            "black",
            "isort",
            "pylint",
        ],
    },
    python_requires=">=3.9",
)
