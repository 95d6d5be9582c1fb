"""envforge - Environment provisioning for containerized workloads.

This package provisions isolated AWS environments (network, cluster and
IAM scaffolding) and renders the CloudFormation templates that describe
the workloads deployed into them.
"""

__version__ = "1.0.0"
__author__ = "envforge maintainers"
