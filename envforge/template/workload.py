"""Data objects rendered into workload CloudFormation templates.

Every option is plain data. Callers validate the combinations they build,
for example that an autoscaling block sets at least one scaling dimension;
the template engine renders whatever it is given.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# Workload types.
LOAD_BALANCED_WEB_SERVICE_TYPE = "Load Balanced Web Service"
REQUEST_DRIVEN_WEB_SERVICE_TYPE = "Request-Driven Web Service"
BACKEND_SERVICE_TYPE = "Backend Service"
WORKER_SERVICE_TYPE = "Worker Service"
SCHEDULED_JOB_TYPE = "Scheduled Job"

# VPC networking configuration.
ENABLE_PUBLIC_IP = "ENABLED"
DISABLE_PUBLIC_IP = "DISABLED"
PUBLIC_SUBNETS_PLACEMENT = "PublicSubnets"
PRIVATE_SUBNETS_PLACEMENT = "PrivateSubnets"

# Runtime platform configuration.
OS_LINUX = "LINUX"
OS_WINDOWS_SERVER_FULL = "WINDOWS_SERVER_2019_FULL"
OS_WINDOWS_SERVER_CORE = "WINDOWS_SERVER_2019_CORE"

ARCH_X86 = "X86_64"
ARCH_ARM = "ARM"
ARCH_ARM64 = "ARM64"

# Operating systems that only run on Fargate platform version 1.0.0.
OS_FAMILIES_FOR_PV100 = (OS_WINDOWS_SERVER_FULL, OS_WINDOWS_SERVER_CORE)

SNS_ARN_PATTERN = "arn:{partition}:sns:{region}:{account}:{app}-{env}-{svc}-{topic}"


def _strip_non_alphanumeric(s: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]+", "", s)


@dataclass
class WorkloadNestedStackOpts:
    """Outputs of a nested stack, such as the addons stack, the workload consumes."""

    stack_name: str
    variable_outputs: List[str] = field(default_factory=list)
    secret_outputs: List[str] = field(default_factory=list)
    policy_outputs: List[str] = field(default_factory=list)
    security_group_outputs: List[str] = field(default_factory=list)


@dataclass
class ContainerHealthCheck:
    command: List[str] = field(default_factory=list)
    interval: Optional[int] = None
    retries: Optional[int] = None
    start_period: Optional[int] = None
    timeout: Optional[int] = None


@dataclass
class MountPoint:
    """A mount point in a container definition."""

    container_path: Optional[str] = None
    read_only: Optional[bool] = None
    source_volume: Optional[str] = None


@dataclass
class SidecarStorageOpts:
    mount_points: List[MountPoint] = field(default_factory=list)


@dataclass
class SidecarOpts:
    """A container running beside the main workload container."""

    name: str
    image: Optional[str] = None
    essential: Optional[bool] = None
    port: Optional[str] = None
    protocol: Optional[str] = None
    creds_param: Optional[str] = None
    variables: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    storage: SidecarStorageOpts = field(default_factory=SidecarStorageOpts)
    docker_labels: Dict[str, str] = field(default_factory=dict)
    depends_on: Dict[str, str] = field(default_factory=dict)
    entry_point: List[str] = field(default_factory=list)
    command: List[str] = field(default_factory=list)
    health_check: Optional[ContainerHealthCheck] = None


@dataclass
class EFSPermission:
    """An IAM statement granting access to a file system."""

    filesystem_id: Optional[str] = None
    write: bool = False
    access_point_id: Optional[str] = None


@dataclass
class EFSVolumeConfiguration:
    """An externally managed file system. A root directory of "/" and no root directory are equivalent."""

    filesystem: Optional[str] = None
    root_directory: Optional[str] = None
    access_point_id: Optional[str] = None
    iam: Optional[str] = None


@dataclass
class Volume:
    name: str
    efs: Optional[EFSVolumeConfiguration] = None


@dataclass
class ManagedVolumeCreationInfo:
    """How to create the access point of an environment managed file system."""

    name: str
    dir_name: str
    uid: int
    gid: int


@dataclass
class StorageOpts:
    """Volumes and mount points of the task."""

    ephemeral: Optional[int] = None
    volumes: List[Volume] = field(default_factory=list)
    mount_points: List[MountPoint] = field(default_factory=list)
    efs_perms: List[EFSPermission] = field(default_factory=list)
    managed_volume_info: Optional[ManagedVolumeCreationInfo] = None

    def requires_efs_creation(self) -> bool:
        """Whether the environment must create a managed file system for the workload."""
        return self.managed_volume_info is not None


@dataclass
class LogConfigOpts:
    """FireLens configuration routing the workload's logs."""

    image: Optional[str] = None
    destination: Dict[str, str] = field(default_factory=dict)
    enable_metadata: Optional[str] = None
    secret_options: Dict[str, str] = field(default_factory=dict)
    config_file: Optional[str] = None
    variables: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)


@dataclass
class HTTPHealthCheckOpts:
    health_check_path: str = "/"
    success_codes: str = ""
    healthy_threshold: Optional[int] = None
    unhealthy_threshold: Optional[int] = None
    interval: Optional[int] = None
    timeout: Optional[int] = None
    deregistration_delay: Optional[int] = None
    grace_period: Optional[int] = None


@dataclass
class NetworkLoadBalancerListener:
    port: str
    protocol: str
    target_container: str
    target_port: str
    ssl_policy: Optional[str] = None
    aliases: List[str] = field(default_factory=list)


@dataclass
class NetworkLoadBalancer:
    """A public network load balancer in front of the service."""

    public_subnet_cidrs: List[str]
    listener: NetworkLoadBalancerListener
    main_container_port: str


@dataclass
class CapacityProviderStrategy:
    capacity_provider: str
    base: Optional[int] = None
    weight: Optional[int] = None


@dataclass
class AutoscalingQueueDelayOpts:
    acceptable_backlog_per_task: int


@dataclass
class AutoscalingOpts:
    """Target tracking scaling of the service's task count."""

    min_capacity: Optional[int] = None
    max_capacity: Optional[int] = None
    cpu: Optional[float] = None
    memory: Optional[float] = None
    requests: Optional[float] = None
    response_time: Optional[float] = None
    queue_delay: Optional[AutoscalingQueueDelayOpts] = None


@dataclass
class ExecuteCommandOpts:
    """Enables ECS Exec on the service."""
    pass


@dataclass
class StateMachineOpts:
    timeout: Optional[int] = None
    retries: Optional[int] = None


@dataclass
class Topic:
    """An SNS topic the workload publishes to."""

    name: str
    region: str = ""
    partition: str = "aws"
    account_id: str = ""
    app: str = ""
    env: str = ""
    svc: str = ""

    def arn(self) -> str:
        return SNS_ARN_PATTERN.format(
            partition=self.partition,
            region=self.region,
            account=self.account_id,
            app=self.app,
            env=self.env,
            svc=self.svc,
            topic=self.name,
        )


@dataclass
class PublishOpts:
    topics: List[Topic] = field(default_factory=list)


@dataclass
class DeadLetterQueue:
    tries: Optional[int] = None


@dataclass
class SQSQueue:
    retention: Optional[int] = None
    delay: Optional[int] = None
    timeout: Optional[int] = None
    dead_letter: Optional[DeadLetterQueue] = None


@dataclass
class TopicSubscription:
    """A subscription to another service's topic."""

    name: str
    service: str
    queue: Optional[SQSQueue] = None

    def queue_name(self) -> str:
        """Logical ID of the subscription's dedicated queue."""
        svc = _strip_non_alphanumeric(self.service)
        topic = _strip_non_alphanumeric(self.name)
        return f"{svc}{topic[:1].upper()}{topic[1:]}EventsQueue"


@dataclass
class SubscribeOpts:
    topics: List[TopicSubscription] = field(default_factory=list)
    queue: Optional[SQSQueue] = None

    def has_topic_queues(self) -> bool:
        """Whether any subscription has a dedicated queue."""
        return any(topic.queue is not None for topic in self.topics)


@dataclass
class NetworkOpts:
    assign_public_ip: str = ENABLE_PUBLIC_IP
    subnets_type: str = PUBLIC_SUBNETS_PLACEMENT
    security_groups: List[str] = field(default_factory=list)


@dataclass
class RuntimePlatformOpts:
    os: str = ""
    arch: str = ""

    def is_empty(self) -> bool:
        return not self.os and not self.arch

    def is_default(self) -> bool:
        """Whether the platform is the default image platform, linux/amd64."""
        if self.is_empty():
            return True
        return self.os == OS_LINUX and self.arch == ARCH_X86

    def version(self) -> str:
        """Fargate platform version for the operating system family."""
        if self.os in OS_FAMILIES_FOR_PV100:
            return "1.0.0"
        return "LATEST"


@dataclass
class WorkloadOpts:
    """Optional data that enables features in a workload stack template."""

    # Common to all workload templates.
    variables: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    aliases: List[str] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)
    nested_stack: Optional[WorkloadNestedStackOpts] = None
    addons_extra_params: str = ""
    sidecars: List[SidecarOpts] = field(default_factory=list)
    log_config: Optional[LogConfigOpts] = None
    autoscaling: Optional[AutoscalingOpts] = None
    capacity_providers: List[CapacityProviderStrategy] = field(default_factory=list)
    desired_count_on_spot: Optional[int] = None
    storage: Optional[StorageOpts] = None
    network: NetworkOpts = field(default_factory=NetworkOpts)
    execute_command: Optional[ExecuteCommandOpts] = None
    platform: RuntimePlatformOpts = field(default_factory=RuntimePlatformOpts)
    entry_point: List[str] = field(default_factory=list)
    command: List[str] = field(default_factory=list)
    domain_alias: str = ""
    docker_labels: Dict[str, str] = field(default_factory=dict)
    depends_on: Dict[str, str] = field(default_factory=dict)
    publish: Optional[PublishOpts] = None
    service_discovery_endpoint: str = ""
    http_version: Optional[str] = None

    # Service templates.
    workload_type: str = ""
    health_check: Optional[ContainerHealthCheck] = None
    http_health_check: HTTPHealthCheckOpts = field(default_factory=HTTPHealthCheckOpts)
    deregistration_delay: Optional[int] = None
    allowed_source_ips: List[str] = field(default_factory=list)
    nlb: Optional[NetworkLoadBalancer] = None

    # Inline Lambda function sources.
    rule_priority_lambda: str = ""
    desired_count_lambda: str = ""
    env_controller_lambda: str = ""
    credentials_parameter: str = ""
    backlog_per_task_calculator_lambda: str = ""
    nlb_cert_manager_function_lambda: str = ""

    # Job templates.
    schedule_expression: str = ""
    state_machine: Optional[StateMachineOpts] = None

    # Request-driven web service templates.
    start_command: Optional[str] = None
    enable_health_check: bool = False
    alias: Optional[str] = None
    script_bucket_name: Optional[str] = None
    custom_domain_lambda: Optional[str] = None
    aws_sdk_layer: Optional[str] = None
    app_dns_delegation_role: Optional[str] = None
    app_dns_name: Optional[str] = None

    # Worker service templates.
    subscribe: Optional[SubscribeOpts] = None

    # Unreleased features to enable in tests.
    feature_flags: List[str] = field(default_factory=list)
