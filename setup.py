from setuptools import setup, find_packages

setup(
    name='bundle-resolve',
    version='0.1',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.9',
    install_requires=[
        'Click',
        'PyYAML',
        'pydantic>=2',
        'Jinja2',
        'requests',
        'semantic_version',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
            'pytest-mock',
        ],
    },
    entry_points='''
        [console_scripts]
        bundle-resolve=bundle_resolve.cli:main
    ''',
)
