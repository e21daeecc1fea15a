from setuptools import setup, find_packages

setup(
    name="sessh",
    version="0.1.0",
    packages=find_packages(include=["sessh", "sessh.*"]),
    description="Persistent remote tmux sessions over multiplexed ssh, driven by one-shot commands.",
    author="Max Carlson",
    author_email="carlsonamax@gmail.com",
    install_requires=[
        "pydantic>=2.0",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "sessh=sessh.cli:main",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
    ],
)
