# -*- encoding: utf-8 -*-
from setuptools import setup, find_packages

with open('README.rst', 'r', encoding='utf-8') as fh:
    long_description = fh.read()


def get_version(package_path):
    import os
    from importlib.util import module_from_spec, spec_from_file_location
    spec = spec_from_file_location('version', os.path.join('src', package_path, '_version.py'))
    module = module_from_spec(spec)
    spec.loader.exec_module(module)
    return module.__version__


version = get_version('odoo_operator')

setup(
    name='odoo-operator',
    version=version,
    description='Kubernetes operator managing Odoo instances and the copying of their databases',
    long_description=long_description,
    long_description_content_type='text/x-rst',
    classifiers="""Development Status :: 3 - Alpha
Environment :: Console
Intended Audience :: System Administrators
Operating System :: POSIX
Programming Language :: Python :: 3.8
Programming Language :: Python :: 3.9
Programming Language :: Python :: 3.10
Programming Language :: Python :: 3.11
Topic :: System :: Systems Administration
""" [:-1].split('\n'),
    keywords='kubernetes operator odoo',
    packages=find_packages('src', exclude=['*.tests', '*.tests.*']),
    package_dir={
        '': 'src',
    },
    package_data={
        'odoo_operator': ['schemas/*/*.yaml', 'templates/*.j2'],
    },
    zip_safe=False,  # The job templates are loaded from the filesystem.
    install_requires=[
        'kopf>=1.35',
        'pykube-ng>=22.1',
        'requests>=2.20',
        'ruamel.yaml>=0.17.21',
        'cerberus>=1.2,<2',
        'semantic_version>=2.6.0,<3',
        'Jinja2>=3.0,<4',
        'structlog>=21.1.0',
        'colorama>=0.4.1,<1',
    ],
    extras_require={
        'dev': ['parameterized'],
    },
    python_requires='>=3.8',
    entry_points="""
        [console_scripts]
            odoo-operator = odoo_operator.scripts.odoo_operator:main
    """,
)
