"""Setup and install serdes-tools

Typical usage:
  python setup.py develop
  python setup.py install
  pip install -e .[test]
"""

import os
import re

import setuptools

module_name = "serdes-tools"
module_folder = "serdes_tools"

cwd = os.path.dirname(os.path.abspath(__file__))

with open(os.path.join(cwd, "README.md"), encoding="utf-8") as readme:
  long_description = readme.read()

with open(os.path.join(cwd, module_folder, "version.py"),
          "r",
          encoding="utf-8") as file:
  version = re.search(r'__version__ = "(.*)"', file.read())[1]

required = ["numpy", "colorama", "matplotlib"]

setuptools.setup(
    name=module_name,
    version=version,
    description="A library for calibrating simulated PAM4 serial links",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    install_requires=required,
    extras_require={"test": ["time-machine", "AutoDict", "coverage", "pylint"]},
    test_suite="tests",
    entry_points={
        "console_scripts": ["serdes-analyze=serdes_tools.analyze:main"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Development Status :: 2 - Pre-Alpha",
        "License :: OSI Approved :: MIT License",
        "Intended Audience :: Developers",
        "Topic :: Scientific/Engineering :: Electronic Design Automation (EDA)",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    python_requires=">=3.8",
    include_package_data=True,
    zip_safe=False,
)
