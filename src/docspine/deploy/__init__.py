"""Publishing built documentation to a hosting branch from CI."""

from docspine.deploy.config import DeployEnvironment, DeployOptions
from docspine.deploy.workflow import GitRunner, build_site, deploy_docs, gate_failures, should_deploy

__all__ = [
    "DeployEnvironment",
    "DeployOptions",
    "GitRunner",
    "build_site",
    "deploy_docs",
    "gate_failures",
    "should_deploy",
]
