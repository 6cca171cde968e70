"""Install the onboard-auth package."""

from setuptools import setup, find_packages

setup(
    name='onboard-auth',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    python_requires='>=3.9',
    install_requires=[
        "flask",
        "werkzeug",
        "requests",
        "pydantic>=2",
        "redis",
        "fakeredis",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "pytest-mock",
            "hypothesis",
        ],
    },
    zip_safe=False
)
