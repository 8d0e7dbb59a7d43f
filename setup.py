from setuptools import setup, find_packages

# Version info -- read without importing
_locals = {}
with open('DSKE/_version.py') as fp:
    exec(fp.read(), None, _locals)
version = _locals['__version__']

with open("README.rst", "r") as fh:
    long_description = fh.read()

setup(
    name = "DSKE",
    version = version,
    author = "Axel Rau",
    author_email = "axel.rau@chaos1.de",
    description = "DNSsec key rollover enforcer",
    long_description = long_description,
    long_description_content_type="text/x-rst",
    url = "https://github.com/mc3/DSKE",
    packages = find_packages(exclude=['tests']),
    entry_points = {
        'console_scripts': [
            'operate_dske = DSKE.operate:execute_from_command_line',
        ],
    },
    license = 'GPLv3',
    classifiers = [
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: GNU General Public License (GPL)',
        'Operating System :: POSIX',
        'Topic :: Internet',
        'Topic :: Internet :: Name Service (DNS)',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3 :: Only',
        'Natural Language :: English',
    ],
    python_requires='>=3.6',
    install_requires=[
        'dnspython>=2.0.0',
        'script>=1.7.2',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
