from setuptools import find_packages, setup

setup(
    name="prmetrics",
    version="0.1.0",
    description="Pull request size classification with synchronized review comments for GitHub and Azure Repos",
    packages=find_packages(include=["prmetrics", "prmetrics.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2",
        "PyYAML",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "prmetrics=prmetrics.cli:main",
        ],
    },
)
