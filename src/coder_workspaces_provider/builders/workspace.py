"""Builder for Workspace desired state."""

from __future__ import annotations

from typing import Any

from ..constants import (
    ANNOTATION_EXTERNAL_NAME,
    API_GROUP,
    DEFAULT_PROVIDER_CONFIG,
    DELETION_POLICY_DELETE,
    DELETION_POLICY_ORPHAN,
    KIND_WORKSPACE,
)
from ..exceptions import UnsupportedResourceError
from ..models import Workspace, WorkspaceParameters


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _optional_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


def create_parameters_from_spec(for_provider: dict[str, Any]) -> WorkspaceParameters:
    """Create workspace parameters from ``spec.forProvider``.

    Args:
        for_provider: Workspace CRD forProvider block

    Returns:
        Parsed parameters

    Raises:
        ValueError: If a numeric field is not a number
    """
    return WorkspaceParameters(
        image_id=_optional_str(for_provider.get("image_id")),
        org_id=_optional_str(for_provider.get("org_id")),
        image_tag=_optional_str(for_provider.get("image_tag")),
        cpu_cores=_optional_str(for_provider.get("cpu_cores")),
        memory_gb=_optional_str(for_provider.get("memory_gb")),
        disk_gb=_optional_int(for_provider.get("disk_gb")),
        gpus=_optional_int(for_provider.get("gpus")),
        use_container_vm=_optional_bool(for_provider.get("use_container_vm")),
        resource_pool_id=_optional_str(for_provider.get("resource_pool_id")),
        namespace=_optional_str(for_provider.get("namespace")),
        autostart_enabled=_optional_bool(for_provider.get("autostart_enabled")),
        autostart_schedule=_optional_str(for_provider.get("autostart_schedule")),
        user_name=_optional_str(for_provider.get("user_name")),
        for_user_id=_optional_str(for_provider.get("for_user_id")),
        template_id=_optional_str(for_provider.get("template_id")),
        template=_optional_str(for_provider.get("template")),
    )


def validate_workspace_spec(spec: dict[str, Any]) -> str | None:
    """Validate a Workspace spec.

    Returns:
        An error message, or None when the spec is valid
    """
    for_provider = spec.get("forProvider")
    if not isinstance(for_provider, dict):
        return "spec.forProvider is required"

    if not for_provider.get("template") and not for_provider.get("template_id"):
        return "spec.forProvider.template or spec.forProvider.template_id is required"

    for field_name in ("disk_gb", "gpus"):
        value = for_provider.get(field_name)
        if value is None or value == "":
            continue
        try:
            if int(value) < 0:
                return f"spec.forProvider.{field_name} must not be negative"
        except (TypeError, ValueError):
            return f"spec.forProvider.{field_name} must be an integer"

    secret_ref = spec.get("writeConnectionSecretToRef")
    if secret_ref is not None and (not secret_ref.get("name") or not secret_ref.get("namespace")):
        return "spec.writeConnectionSecretToRef requires name and namespace"

    policy = spec.get("deletionPolicy", DELETION_POLICY_DELETE)
    if policy not in (DELETION_POLICY_DELETE, DELETION_POLICY_ORPHAN):
        return f"spec.deletionPolicy must be {DELETION_POLICY_DELETE} or {DELETION_POLICY_ORPHAN}"

    return None


def get_external_name(meta: dict[str, Any]) -> str:
    """External name: the external-name annotation, else metadata.name."""
    annotations = meta.get("annotations") or {}
    return annotations.get(ANNOTATION_EXTERNAL_NAME) or meta["name"]


def create_workspace_from_body(body: dict[str, Any]) -> Workspace:
    """Create the desired-state snapshot of a Workspace from its body.

    Args:
        body: Full resource body (apiVersion, kind, metadata, spec)

    Returns:
        Workspace snapshot

    Raises:
        UnsupportedResourceError: If the body is not a Workspace
    """
    api_version = body.get("apiVersion", "")
    if body.get("kind") != KIND_WORKSPACE or not api_version.startswith(f"{API_GROUP}/"):
        raise UnsupportedResourceError(
            f"managed resource is not a {KIND_WORKSPACE} custom resource",
            detail=f"{api_version} {body.get('kind')}",
        )

    meta = body.get("metadata", {})
    spec = body.get("spec", {})
    provider_config_ref = spec.get("providerConfigRef") or {}

    return Workspace(
        name=meta["name"],
        uid=meta.get("uid", ""),
        generation=meta.get("generation", 0),
        external_name=get_external_name(meta),
        parameters=create_parameters_from_spec(spec.get("forProvider") or {}),
        provider_config_name=provider_config_ref.get("name") or DEFAULT_PROVIDER_CONFIG,
        connection_secret_ref=spec.get("writeConnectionSecretToRef"),
        deletion_policy=spec.get("deletionPolicy", DELETION_POLICY_DELETE),
        deleting=bool(meta.get("deletionTimestamp")),
    )
