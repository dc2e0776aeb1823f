from setuptools import setup, find_packages

setup(
    name="fixed_income_analytics",
    version="0.1.0",
    description="Bond analytics and discount curve bootstrapping",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
