# setup.py
from setuptools import setup, find_packages

setup(
    name="financeflow",
    version="0.1.0",
    description="Personal finance tracking with rule-based and AI-assisted categorization",
    packages=find_packages(include=["finance_flow", "finance_flow.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "pyyaml>=5.3",
        "pandas>=1.1",
        "python-dotenv>=1.0",
        "anyio>=4.1",
        "pydantic>=2.0",
        "google-generativeai>=0.7",
        "huggingface_hub>=0.23",
        "mcp>=1.0,<2",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "financeflow=finance_flow.cli:main",
            "financeflow-mcp=finance_flow.mcp_server:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
)
