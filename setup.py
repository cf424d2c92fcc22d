"""Install the authgate package."""

from setuptools import setup, find_packages

setup(
    name='authgate',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    entry_points={
        'console_scripts': [
            'authgate-generate-token=authgate.generate_token:generate_token'
        ]
    },
    install_requires=[
        "flask>=2.3",
        "werkzeug>=2.3",
        "python-dateutil",
        "pytz",
        "pyjwt>=2",
        "redis",
        "retry",
        "python-json-logger",
        "click"
    ],
    extras_require={
        'test': ['pytest', 'pytest-mock']
    },
    zip_safe=False
)
