import os
import re
from setuptools import setup

# get the path of the current file
script_dir = os.path.dirname(os.path.abspath(__file__))


# read the version from tidyverbs/__init__.py, which is `__version__ = "0.1.0"`
def get_version():
    init_file = os.path.join(script_dir, "tidyverbs", "__init__.py")
    with open(init_file, "r") as f:
        init_content = f.read()
    regPattern = r"^__version__ = \"(\d+\.\d+\.\d+)\""
    match = re.search(regPattern, init_content, re.MULTILINE)
    if match is None:
        raise RuntimeError("Failed to find __version__ in tidyverbs/__init__.py")
    return match.group(1)


def get_long_description():
    readme = os.path.join(script_dir, "README.md")
    if not os.path.exists(readme):
        return ""
    with open(readme, "r", encoding="utf-8") as f:
        return f.read()


# this will be executed by pip install . or python setup.py bdist_wheel
if __name__ == "__main__":
    setup(
        name="tidyverbs",
        version=get_version(),
        description="dplyr-style verb grammar for pandas tables",
        long_description=get_long_description(),
        long_description_content_type="text/markdown",
        packages=['tidyverbs'],
        install_requires=[
            "pandas>=2.0.0",
            "numpy>=1.24",
        ],
        extras_require={
            "test": ["pytest>=7.0"],
        },
        exclude_package_data={'': ['*.pyc']},
        python_requires='>=3.8',
        test_suite="tidyverbs.tests",
        zip_safe=False,
    )
