#!/usr/bin/env python
"""Setuptools distribution file."""
import os
from setuptools import setup


def _get_here(fname):
    return os.path.join(os.path.dirname(__file__), fname)


def _get_long_description(fname, encoding='utf8'):
    with open(fname, 'r', encoding=encoding) as fin:
        return fin.read()


def _get_install_requires(fname):
    with open(fname, 'r') as fin:
        return [line.strip() for line in fin
                if line.strip() and not line.startswith('#')]


setup(name='mudgate',
      version='0.3.0',
      license='ISC',
      description="Logging, parsing gateway between users and a MUD",
      long_description=_get_long_description(fname=_get_here('README.rst')),
      packages=['mudgate'],
      package_data={'': ['README.rst', 'requirements.txt'], },
      python_requires='>=3.9',
      install_requires=_get_install_requires(_get_here('requirements.txt')),
      extras_require={
          'test': ['pytest', 'pytest-asyncio'],
      },
      entry_points={
         'console_scripts': [
             'mudgate-client = mudgate.client:main',
             'mudgate-events = mudgate.query:main',
         ]},
      platforms='any',
      zip_safe=True,
      keywords=', '.join(('telnet', 'mud', 'gateway', 'parser', 'chat',
                          'asyncio', 'talker')),
      classifiers=['License :: OSI Approved :: ISC License (ISCL)',
                   'Programming Language :: Python :: 3',
                   'Intended Audience :: Developers',
                   'Development Status :: 4 - Beta',
                   'Topic :: Terminals :: Telnet',
                   'Topic :: Games/Entertainment :: Multi-User Dungeons (MUD)',
                   'Topic :: Internet',
                   ],
      )
