"""Install the Redis session handler package."""

from setuptools import setup, find_packages

setup(
    name='redis-session-handler',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    python_requires='>=3.8',
    install_requires=[
        "redis>=4.1",
        "flask",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
        ],
    },
    zip_safe=False
)
