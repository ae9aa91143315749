"""Package setup for target_crawler."""

from setuptools import setup, find_packages

setup(
    name="target-crawler",
    version="1.0.0",
    description="Resumable same-domain BFS crawler that finds the pages linking to a set of target URLs",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.31.0",
        "beautifulsoup4>=4.12.0",
        "lxml>=5.0.0",
        "urllib3>=2.0.0",
        "tqdm>=4.66.0",
        "colorlog>=6.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "target-crawler=target_crawler.cli:main",
        ],
    },
)
