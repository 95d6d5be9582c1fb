"""Packaging of the environment stack's custom resource functions.

CloudFormation limits inline Lambda source (ZipFile) to 4096 characters, so
the handlers are zipped and uploaded, and the environment template points
at the uploaded objects.
"""

import hashlib
from typing import Dict, Optional

from envforge.deploy.s3 import CompressAndUploadFunc, NamedBinary
from envforge.template.template import Template


CUSTOM_RESOURCE_SCRIPT_PATH = "custom-resources/{name}.js"
CUSTOM_RESOURCE_OBJECT_KEY = "manual/scripts/custom-resources/{name}/{digest}.zip"
HANDLER_FILE_NAME = "index.js"

# Logical function names of the environment stack and the script backing each.
ENV_CUSTOM_RESOURCES = {
    "CertificateValidationFunction": "dns-cert-validator",
    "DNSDelegationFunction": "dns-delegation",
    "CustomDomainFunction": "custom-domain",
}


def upload_environment_custom_resources(upload_fn: CompressAndUploadFunc,
                                        template: Optional[Template] = None) -> Dict[str, str]:
    """Upload the environment's custom resource functions.

    Args:
        upload_fn: Called as upload_fn(key, *objects); zips and uploads the
            objects and returns the URL of the archive
        template: Template reader, defaults to the packaged templates

    Returns:
        URL of the uploaded archive for each logical function name

    Raises:
        TemplateError: When a script cannot be read
    """
    template = template or Template()
    urls = {}
    for fn_name, script in ENV_CUSTOM_RESOURCES.items():
        content = template.read(CUSTOM_RESOURCE_SCRIPT_PATH.format(name=script)).encode("utf-8")
        key = CUSTOM_RESOURCE_OBJECT_KEY.format(
            name=fn_name.lower(), digest=hashlib.sha256(content).hexdigest()
        )
        urls[fn_name] = upload_fn(key, NamedBinary(name=HANDLER_FILE_NAME, content=content))
    return urls
