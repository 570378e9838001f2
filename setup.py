# -*- coding: utf-8 -*-
"""vault-creds a sidecar keeping Vault issued credentials alive for a Kubernetes workload.

The sidecar exchanges the pod's service account token for a Vault token, fetches dynamic
database credentials or a PKI certificate, writes them through a template and renews
session and lease until the workload completes.

"""

import setuptools
import re
from io import open

VERSIONFILE="vault_creds/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))

with open("README.md", "r", encoding='utf-8') as fh:
    long_description = fh.read()

setuptools.setup(
    name='vault_creds',
    version=verstr,
    author="Mike Moore",
    author_email="z_z_zebra@yahoo.com",
    description="A Kubernetes sidecar that fetches Vault credentials or certificates and keeps their leases renewed",
    long_description_content_type="text/markdown",
    long_description=long_description,
    packages=setuptools.find_packages(),
    python_requires=">=3.8",
    tests_require=['pytest'],
    extras_require={
        "test": ["pytest"],
    },
    include_package_data=True,
    license="MIT",
    entry_points={
        "console_scripts": [
            "vault-creds=vault_creds.cli:main",
        ],
    },
    install_requires=[
        "hvac>=1.2,<3.0",
        "tenacity>=8.3",
        "kubernetes>=24.0",
        "prometheus-client>=0.12",
        "PyYAML>=5.4",
        "Jinja2>=3.0",
        "requests>=2.25",
        "python-dateutil~=2.0"
    ],
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],

)
