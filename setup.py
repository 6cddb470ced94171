from setuptools import setup
import os

PACKAGE = 'TracOidLogin'
VERSION = '0.1.0'

here = os.path.abspath(os.path.dirname(__file__))
README = open(os.path.join(here, 'README.rst')).read()
CHANGES = open(os.path.join(here, 'CHANGES.rst')).read()

install_requires = [
    "Trac >= 1.6",
    "python3-openid >= 3.2",
    ]

setup(
    name=PACKAGE,
    version=VERSION,
    description='OpenID 2.0 login for Trac',
    long_description=README + "\n\n" + CHANGES,
    platforms = ['Any'],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Plugins",
        "Environment :: Web Environment",
        "Framework :: Trac",
        "Intended Audience :: System Administrators",
        "Topic :: Internet :: WWW/HTTP",
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: BSD License",
        ],
    keywords='trac openid',
    license='Trac license (BSD-like)',

    packages=['oidlogin'],
    package_data={
        'oidlogin': [
            'templates/*.html',
            ],
        },

    entry_points={
        'trac.plugins': [
            '%s = oidlogin' % PACKAGE,
            ],
        },

    install_requires=install_requires,
    extras_require = {
        'test': ['mock', 'WebOb'],
        },
    )
