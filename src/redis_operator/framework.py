"""
End-to-end test framework

Drives kustomize and kubectl to install the operator manifests into a
live cluster. Not used by the operator itself.
"""

import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from redis_operator.errors import FrameworkError

logger = logging.getLogger(__name__)

# Positional order of documents in the kustomize build output
KUSTOMIZE_DOCUMENTS = [
    "namespace",
    "crd",
    "role",
    "clusterrole",
    "rolebinding",
    "clusterrolebinding",
    "deployment",
]


@dataclass
class KustomizeConfig:
    """Resources generated by kustomize, parsed into mappings."""

    namespace: Dict[str, Any] = field(default_factory=dict)
    crd: Dict[str, Any] = field(default_factory=dict)
    role: Dict[str, Any] = field(default_factory=dict)
    clusterrole: Dict[str, Any] = field(default_factory=dict)
    rolebinding: Dict[str, Any] = field(default_factory=dict)
    clusterrolebinding: Dict[str, Any] = field(default_factory=dict)
    deployment: Dict[str, Any] = field(default_factory=dict)


def split_documents(text: str) -> List[str]:
    """Split multi-document YAML into individual document strings."""
    docs: List[str] = []
    current: List[str] = []
    for line in text.splitlines(keepends=True):
        if line.rstrip() == "---":
            if "".join(current).strip():
                docs.append("".join(current))
            current = []
            continue
        current.append(line)
    if "".join(current).strip():
        docs.append("".join(current))
    return docs


def is_kubectl_warning(stderr: str) -> bool:
    """kubectl prints deprecation notices to stderr prefixed with 'Warning:'."""
    words = stderr.strip().split(" ")
    return len(words) > 0 and words[0] == "Warning:"


class Framework:
    """Wraps the kustomize and kubectl command line tools."""

    def __init__(
        self,
        kustomize_bin: str = "kustomize",
        kubectl_bin: str = "kubectl",
        workdir: Optional[str] = None,
    ):
        self.kustomize_bin = kustomize_bin
        self.kubectl_bin = kubectl_bin
        self.workdir = workdir
        self.kustomize_config: Optional[KustomizeConfig] = None

    def _run_kustomize(self, args: List[str]) -> str:
        cmd = [self.kustomize_bin] + args
        logger.info("kustomize> %s", " ".join(cmd))
        result = subprocess.run(cmd, capture_output=True, text=True, cwd=self.workdir)

        if result.returncode != 0:
            raise FrameworkError(
                f"kustomize encountered an error on command {args}: {result.stderr.strip()}",
                result.stdout,
                result.stderr,
            )
        if result.stderr.strip():
            raise FrameworkError(
                f"kustomize encountered an error on command {args}\n{result.stderr}",
                result.stdout,
                result.stderr,
            )
        if not result.stdout.strip() and args[0] == "build":
            raise FrameworkError(
                f"kustomize returned empty config for command {args}",
                result.stdout,
                result.stderr,
            )
        return result.stdout

    def build_kustomize_config(self, config_path: str, image: str) -> str:
        """Point the controller image at ``image`` and build ``config_path``."""
        logger.info("Building kustomize config from %s", config_path)
        self._run_kustomize(["edit", "set", "image", f"controller={image}"])
        return self._run_kustomize(["build", config_path])

    def parse_kustomize_config(self, yaml_config: str) -> tuple[KustomizeConfig, Dict[str, str]]:
        """Parse kustomize output into typed resources and raw documents.

        Relies on kustomize emitting documents in ``KUSTOMIZE_DOCUMENTS`` order.
        """
        docs = split_documents(yaml_config)
        if len(docs) < len(KUSTOMIZE_DOCUMENTS):
            raise FrameworkError(
                f"expected {len(KUSTOMIZE_DOCUMENTS)} documents from kustomize, got {len(docs)}"
            )

        parsed: Dict[str, Dict[str, Any]] = {}
        yaml_map: Dict[str, str] = {}
        for name, doc in zip(KUSTOMIZE_DOCUMENTS, docs):
            try:
                parsed[name] = yaml.safe_load(doc) or {}
            except yaml.YAMLError as e:
                raise FrameworkError(f"could not unmarshal {name} resource: {e}") from e
            yaml_map[name] = doc

        config = KustomizeConfig(**parsed)
        self.kustomize_config = config
        return config, yaml_map

    def build_and_parse_kustomize_config(
        self, config_path: str, image: str
    ) -> tuple[KustomizeConfig, Dict[str, str]]:
        yaml_config = self.build_kustomize_config(config_path, image)
        return self.parse_kustomize_config(yaml_config)

    def _run_kubectl(
        self, yaml_resource: str, args: List[str], timeout: float, dry_run: bool = False
    ) -> tuple[str, str]:
        if dry_run:
            args = ["--dry-run=client", "-o", "yaml"] + args
        args = ["--request-timeout", f"{timeout}s"] + args
        cmd = [self.kubectl_bin] + args
        logger.info("kubectl> %s", " ".join(cmd))

        result = subprocess.run(cmd, input=yaml_resource, capture_output=True, text=True)

        if result.returncode != 0:
            raise FrameworkError(
                f"kubectl command returned an error: {result.stderr.strip()}",
                result.stdout,
                result.stderr,
            )
        if result.stderr.strip() and not is_kubectl_warning(result.stderr):
            raise FrameworkError(
                f"kubectl command returned an error: {result.stderr}",
                result.stdout,
                result.stderr,
            )
        return result.stdout, result.stderr

    def kubectl_apply(
        self, yaml_resource: str, timeout: float = 30.0, dry_run: bool = False
    ) -> tuple[str, str]:
        return self._run_kubectl(yaml_resource, ["apply", "-f", "-"], timeout, dry_run)

    def kubectl_delete(self, yaml_resource: str, timeout: float = 30.0) -> tuple[str, str]:
        return self._run_kubectl(yaml_resource, ["delete", "-f", "-"], timeout)
