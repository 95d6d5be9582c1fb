"""Composition of CloudFormation templates from a base document and partials.

A workload template is rendered in three steps: the base document and every
partial in PARTIAL_WORKLOAD_CF_TEMPLATE_NAMES are read and parsed, each
partial is registered under its own name so the base document can
``{% include 'nlb' %}`` it, then the composed document is executed against
the data object. Either the whole document renders or an error is raised.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import jinja2

from envforge.template.functions import TEMPLATE_FUNCTIONS, TemplateFunctionError


logger = logging.getLogger(__name__)

# Paths of templates under the package's templates/ directory.
WORKLOAD_CF_TEMPLATE_PATH = "workloads/{dir}/{name}/cf.yml"
PARTIAL_WORKLOAD_CF_TEMPLATE_PATH = "workloads/partials/cf/{name}.yml"
ENV_CF_TEMPLATE_PATH = "environment/cf.yml"

# Directories under templates/workloads/.
SERVICES_DIR_NAME = "services"
JOBS_DIR_NAME = "jobs"

# Names of workload templates.
LB_WEB_SVC_TPL_NAME = "lb-web"
RD_WEB_SVC_TPL_NAME = "rd-web"
BACKEND_SVC_TPL_NAME = "backend"
WORKER_SVC_TPL_NAME = "worker"
SCHEDULED_JOB_TPL_NAME = "scheduled-job"

BASE_TEMPLATE_NAME = "base"

# Partials registered into every workload template.
PARTIAL_WORKLOAD_CF_TEMPLATE_NAMES = (
    "loggroup",
    "envvars-container",
    "envvars-common",
    "secrets",
    "executionrole",
    "taskrole",
    "workload-container",
    "fargate-taskdef-base-properties",
    "service-base-properties",
    "servicediscovery",
    "addons",
    "sidecars",
    "logconfig",
    "autoscaling",
    "eventrule",
    "state-machine",
    "state-machine-definition.json",
    "efs-access-point",
    "env-controller",
    "mount-points",
    "volumes",
    "image-overrides",
    "instancerole",
    "accessrole",
    "publish",
    "subscribe",
    "nlb",
    "vpc-connector",
)


class TemplateError(Exception):
    """Raised when a template cannot be read, parsed or executed."""
    pass


class Content:
    """Rendered template output."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)

    @property
    def data(self) -> bytes:
        return self._data

    def __bytes__(self) -> bytes:
        return self._data

    def __str__(self) -> str:
        return self._data.decode("utf-8")

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Content):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Content({len(self._data)} bytes)"


class Template:
    """Renders the CloudFormation templates shipped with the package.

    Templates in ``override_dir`` take precedence over the packaged ones,
    which lets callers replace individual documents or partials.
    """

    def __init__(self, override_dir: Optional[Path] = None) -> None:
        loaders: list[jinja2.BaseLoader] = []
        if override_dir is not None:
            loaders.append(jinja2.FileSystemLoader(str(override_dir)))
        loaders.append(jinja2.PackageLoader("envforge", "template/templates"))
        self._loader = jinja2.ChoiceLoader(loaders)
        self._source_env = self._new_environment(self._loader)

    @staticmethod
    def _new_environment(loader: jinja2.BaseLoader) -> jinja2.Environment:
        env = jinja2.Environment(
            loader=loader,
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        env.globals.update(TEMPLATE_FUNCTIONS)
        env.filters.update(TEMPLATE_FUNCTIONS)
        return env

    def read(self, path: str) -> str:
        """Read the raw source of a template.

        Raises:
            TemplateError: When the template does not exist
        """
        try:
            source, _, _ = self._loader.get_source(self._source_env, path)
        except jinja2.TemplateNotFound as e:
            raise TemplateError(f"read template {path}: not found") from e
        return source

    def _parse(self, name: str, path: str) -> str:
        source = self.read(path)
        try:
            self._source_env.parse(source, name=name, filename=path)
        except jinja2.TemplateSyntaxError as e:
            raise TemplateError(f"parse template {name}: {e}") from e
        return source

    def render(self, base_name: str, workload_dir: str, data: Any) -> Content:
        """Render a workload template with every partial attached.

        Args:
            base_name: Name of the workload template, e.g. "lb-web"
            workload_dir: Directory of the workload template, e.g. "services"
            data: Data object the template is executed against

        Returns:
            The rendered document

        Raises:
            TemplateError: When a document or partial is missing or malformed,
                or when execution fails
        """
        sources: Dict[str, str] = {}
        try:
            sources[BASE_TEMPLATE_NAME] = self._parse(
                BASE_TEMPLATE_NAME,
                WORKLOAD_CF_TEMPLATE_PATH.format(dir=workload_dir, name=base_name),
            )
        except TemplateError as e:
            raise TemplateError(f"parse base template {base_name}: {e}") from e

        for partial in PARTIAL_WORKLOAD_CF_TEMPLATE_NAMES:
            try:
                sources[partial] = self._parse(
                    partial, PARTIAL_WORKLOAD_CF_TEMPLATE_PATH.format(name=partial)
                )
            except TemplateError as e:
                raise TemplateError(f"add partial {partial} to base template: {e}") from e

        env = self._new_environment(jinja2.DictLoader(sources))
        return self._execute(env, BASE_TEMPLATE_NAME, base_name, data)

    def _execute(self, env: jinja2.Environment, template_name: str,
                 display_name: str, data: Any) -> Content:
        try:
            output = env.get_template(template_name).render(_context(data))
        except (jinja2.TemplateError, TemplateFunctionError, TypeError, AttributeError, ValueError) as e:
            raise TemplateError(f"execute template {display_name} with data {data!r}: {e}") from e
        logger.debug("Rendered template %s (%d characters)", display_name, len(output))
        return Content(output.encode("utf-8"))

    def parse_load_balanced_web_service(self, data: Any) -> Content:
        return self.render(LB_WEB_SVC_TPL_NAME, SERVICES_DIR_NAME, data)

    def parse_request_driven_web_service(self, data: Any) -> Content:
        return self.render(RD_WEB_SVC_TPL_NAME, SERVICES_DIR_NAME, data)

    def parse_backend_service(self, data: Any) -> Content:
        return self.render(BACKEND_SVC_TPL_NAME, SERVICES_DIR_NAME, data)

    def parse_worker_service(self, data: Any) -> Content:
        return self.render(WORKER_SVC_TPL_NAME, SERVICES_DIR_NAME, data)

    def parse_scheduled_job(self, data: Any) -> Content:
        return self.render(SCHEDULED_JOB_TPL_NAME, JOBS_DIR_NAME, data)

    def parse_env(self, data: Any) -> Content:
        """Render the environment stack template."""
        source = self._parse("environment", ENV_CF_TEMPLATE_PATH)
        env = self._new_environment(jinja2.DictLoader({"environment": source}))
        return self._execute(env, "environment", "environment", data)


def _context(data: Any) -> Dict[str, Any]:
    """Expose the data object as ``opts`` and its fields as top-level names."""
    context: Dict[str, Any] = {}
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        context.update({f.name: getattr(data, f.name) for f in dataclasses.fields(data)})
    elif isinstance(data, dict):
        context.update(data)
    context["opts"] = data
    return context
