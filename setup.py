from pathlib import Path

from setuptools import find_packages, setup

# Load packages from requirements.txt
BASE_DIR = Path(__file__).parent
with open(Path(BASE_DIR, "requirements.txt")) as file:
    required_packages = [ln.strip() for ln in file.readlines() if ln.strip()]

# Define our package
setup(
    name="policypath",
    version="0.1.0",
    description="Tutoring session engine for the Indian Constitution: mentor chat, mastery vault, quizzes and XP streaks",
    python_requires=">=3.10",
    packages=find_packages(include=["policypath", "policypath.*"]),
    install_requires=required_packages,
    extras_require={
        "test": ["pytest>=7.0", "httpx"],
        "dev": ["pre-commit==2.19.0"],
    },
)
