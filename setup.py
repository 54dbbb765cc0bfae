"""Install the sessionstores package."""

from setuptools import setup, find_packages

setup(
    name='sessionstores',
    version='0.1.0',
    description='Server-side session stores backed by Redis, LMDB, MongoDB'
                ' or Dgraph, with signed and encrypted cookies.',
    packages=find_packages(exclude=['*tests*']),
    python_requires='>=3.8',
    install_requires=[
        "flask",
        "werkzeug",
        "pyjwt>=2",
        "cryptography",
        "redis>=4.1",
        "lmdb",
        "pymongo",
        "pydgraph",
        "grpcio",
        "pytz",
        "python-json-logger>=3.1",
    ],
    extras_require={
        'test': ['pytest'],
    },
    zip_safe=False
)
