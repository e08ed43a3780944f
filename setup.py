from setuptools import setup, find_packages

setup(name="calcas",
    version="0.1.0",
    license='MIT',
    python_requires=">=3.9",
    install_requires=[
        "torch",
        "ply",
        "numpy"
    ],
    packages=find_packages(exclude=["tests", "tests.*"]),
    extras_require={
        "dev": ["pytest>=7"],
    },
)
