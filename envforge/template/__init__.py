"""CloudFormation template rendering for environments and workloads."""

from envforge.template.template import Content, Template, TemplateError

__all__ = ["Content", "Template", "TemplateError"]
