from setuptools import find_packages
from setuptools import setup

version = '1.1.0.dev0'

install_requires = [
    'acme>=2.0.0',
    'ConfigArgParse>=1.5.3',
    'configobj>=5.0.6',
    'cryptography>=42.0.0',
    'dnspython>=2.0.0',
    'josepy>=1.13.0',
    'parsedatetime>=2.4',
    'requests>=2.20.0',
]

test_extras = [
    'pytest',
    'requests-mock',
]

setup(
    name='netcup-acme',
    version=version,
    description="Obtain and renew certificates for netcup-hosted domains via DNS-01",
    license='Apache License 2.0',
    python_requires='>=3.9.2',
    classifiers=[
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Topic :: Internet :: Name Service (DNS)',
        'Topic :: Security',
        'Topic :: System :: Systems Administration',
        'Topic :: Utilities',
    ],

    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },
    entry_points={
        'console_scripts': [
            'netcup-acme = netcup_acme._internal.main:main',
        ],
    },
)
