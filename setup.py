"""Setup configuration for envforge."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="envforge",
    version="1.0.0",
    author="envforge maintainers",
    description="Provision isolated AWS environments and render workload CloudFormation templates",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    package_data={
        "envforge.template": [
            "templates/*/*.yml",
            "templates/*/*.js",
            "templates/workloads/*/*/*.yml",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.11",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.4", "moto[ec2,iam,s3,ssm]>=5.0"],
    },
    entry_points={
        "console_scripts": [
            "envforge=envforge.cli:main",
        ],
    },
)
