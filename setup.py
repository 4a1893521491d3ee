from setuptools import setup, find_packages

setup(
    name="MedPower",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pandas>=2.1",
        "matplotlib",
        "scipy",
        "tabulate",
    ],
    extras_require={
        "parallel": ["joblib"],
        "progress": ["tqdm"],
        "test": ["pytest", "joblib", "tqdm"],
    },
    author="MedPower developers",
    description="Monte Carlo Power Analysis for Moderated Mediation Path Models",
)
