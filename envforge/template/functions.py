"""Functions available to template authors.

Each function is registered both as a global, ``{{ fmt_slice(aliases) }}``,
and as a filter, ``{{ aliases | fmt_slice }}``.
"""

import json
import re
import uuid
from typing import Dict, List, Sequence, Tuple
from urllib.parse import urlparse

from envforge.template.workload import (
    LOAD_BALANCED_WEB_SERVICE_TYPE,
    PRIVATE_SUBNETS_PLACEMENT,
    MountPoint,
    Topic,
    TopicSubscription,
    WorkloadOpts,
)


class TemplateFunctionError(Exception):
    """Raised when a template function cannot compute its value."""
    pass


_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]+")
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def to_snake_case(s: str) -> str:
    """Convert a CamelCase string to upper snake case.

    For example "usersDdbTableName" becomes "USERS_DDB_TABLE_NAME".
    """
    return _CAMEL_BOUNDARY.sub("_", s).upper()


def logical_id_safe(s: str) -> str:
    """Strip the characters CloudFormation logical IDs do not allow."""
    return _NON_ALPHANUMERIC.sub("", s)


def fmt_slice(elems: Sequence[str]) -> str:
    """Format a list as a YAML flow sequence, e.g. [a, b]."""
    return "[" + ", ".join(str(e) for e in elems) + "]"


def quote_slice(elems: Sequence[str]) -> List[str]:
    """Double-quote every element of a list."""
    return [json.dumps(str(e)) for e in elems]


def random_uuid() -> str:
    try:
        return str(uuid.uuid4())
    except (OSError, NotImplementedError) as e:
        raise TemplateFunctionError(f"generate random uuid: {e}") from e


def json_mount_points(mount_points: Sequence[MountPoint]) -> str:
    """JSON object mapping each source volume to its container path."""
    volumes = {}
    for mp in mount_points:
        if not mp.container_path or not mp.source_volume:
            continue
        volumes[mp.source_volume] = mp.container_path
    return json.dumps(volumes, sort_keys=True)


def json_sns_topics(topics: Sequence[Topic]) -> str:
    """JSON object mapping each topic name to its ARN."""
    arns = {topic.name: topic.arn() for topic in topics if topic.name}
    return json.dumps(arns, sort_keys=True)


def json_queue_uris(subscriptions: Sequence[TopicSubscription]) -> str:
    """JSON object mapping each dedicated queue to the ${...URL} variable of its URL.

    The output is meant to be embedded in an Fn::Sub expression.
    """
    urls = {}
    for topic in subscriptions:
        if topic.queue is None:
            continue
        sub_name = topic.queue_name()
        urls[sub_name] = f"${{{sub_name}URL}}"
    return json.dumps(urls, sort_keys=True)


def env_controller_params(opts: WorkloadOpts) -> List[str]:
    """Names of the environment parameters the env controller must update.

    Names are ordered by workload type, then networking, then storage. Each
    name carries its trailing comma because the list is joined into a
    comma separated parameter value.
    """
    parameters = []
    if opts.workload_type == LOAD_BALANCED_WEB_SERVICE_TYPE:
        parameters.extend(["ALBWorkloads,", "Aliases,"])
    if opts.network.subnets_type == PRIVATE_SUBNETS_PLACEMENT:
        parameters.append("NATWorkloads,")
    if opts.storage is not None and opts.storage.requires_efs_creation():
        parameters.append("EFSWorkloads,")
    return parameters


def word_series(words: Sequence[str], conjunction: str = "and") -> str:
    """Join words into an English series, e.g. "a, b and c"."""
    words = list(words)
    if not words:
        return ""
    if len(words) == 1:
        return words[0]
    if len(words) == 2:
        return f"{words[0]} {conjunction} {words[1]}"
    return f"{', '.join(words[:-1])} {conjunction} {words[-1]}"


def plural_word(quantity: int, singular: str, plural: str = "") -> str:
    """Pick the singular or plural form of a word for a quantity."""
    if quantity == 1:
        return singular
    if plural:
        return plural
    if singular.endswith(("s", "sh", "ch", "x", "z")):
        return singular + "es"
    if singular.endswith("y") and singular[-2:-1] not in "aeiou":
        return singular[:-1] + "ies"
    return singular + "s"


def contains(elems: Sequence[str], s: str) -> bool:
    return s in elems


def has_secrets(opts: WorkloadOpts) -> bool:
    """Whether the workload binds secrets directly or through its nested stack."""
    if opts.secrets:
        return True
    return opts.nested_stack is not None and bool(opts.nested_stack.secret_outputs)


def s3_bucket_key(url: str) -> Tuple[str, str]:
    """Split a virtual-hosted style object URL into its bucket and key."""
    parsed = urlparse(url)
    bucket = parsed.netloc.split(".s3.", 1)[0]
    key = parsed.path.lstrip("/")
    if not bucket or not key or ".s3." not in parsed.netloc:
        raise TemplateFunctionError(f"cannot parse S3 URL {url}")
    return bucket, key


TEMPLATE_FUNCTIONS: Dict[str, object] = {
    "to_snake_case": to_snake_case,
    "has_secrets": has_secrets,
    "fmt_slice": fmt_slice,
    "quote_slice": quote_slice,
    "random_uuid": random_uuid,
    "json_mount_points": json_mount_points,
    "json_sns_topics": json_sns_topics,
    "json_queue_uris": json_queue_uris,
    "env_controller_params": env_controller_params,
    "logical_id_safe": logical_id_safe,
    "word_series": word_series,
    "plural_word": plural_word,
    "contains": contains,
    "s3_bucket_key": s3_bucket_key,
}
