from setuptools import setup, find_packages

setup(
    name="tir-semantics",
    version="0.1.0",
    description="TIR — operational semantics and weakest-precondition calculus for a typed imperative IR",
    packages=find_packages(include=["tir", "tir.*"]),
    python_requires=">=3.10",
    install_requires=[
        "llvmlite>=0.41.0",
        "z3-solver>=4.12.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "hypothesis>=6.0",
        ],
    },
)
