import os

from setuptools import setup

here = os.path.dirname(os.path.abspath(__file__))

# Read the version without importing the package, which needs msgspec
version_ns = {}
with open(os.path.join(here, "geomspec", "_version.py")) as f:
    exec(f.read(), version_ns)

extras_require = {
    "shapely": ["shapely>=2.0", "numpy"],
    "test": ["pytest", "shapely>=2.0", "numpy"],
}

setup(
    name="geomspec",
    version=version_ns["__version__"],
    license="BSD",
    description="A GeoJSON geometry codec and shapely adapter built on msgspec",
    packages=["geomspec"],
    package_data={"geomspec": ["py.typed"]},
    install_requires=["msgspec>=0.18.5"],
    extras_require=extras_require,
    python_requires=">=3.9",
)
