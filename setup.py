from setuptools import setup, find_packages

setup(
    name='CalcNote',
    version='1.0.0',
    description='Live calculator notebook with incremental per-line evaluation',
    packages=find_packages(include=['calcnote', 'calcnote.*']),
    python_requires='>=3.9',
    install_requires=[
        'pint',
        'fastapi',
        'pydantic>=2',
        'uvicorn',
    ],
    extras_require={
        'test': ['pytest', 'httpx'],
    },
    entry_points={
        'console_scripts': ['calcnote-server=calcnote.api_server:main'],
    },
)
