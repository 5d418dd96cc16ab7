# sfcluster/services/pulumi_engine.py
from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional
import requests
from pulumi import automation as auto
from sfcluster.models import ClusterRequest
from .naming import safe_name
from .program_builder import build_pulumi_program
from .validator import PayloadValidator

logger = logging.getLogger(__name__)

def init_pulumi_env() -> None:
    """
    Compute a clean local backend + pulumi home from env (PULUMI_STATE_DIR / PULUMI_HOME)
    and apply them to the current process so /health can display them before any preview/up.
    Reads values from .env file (loaded via load_dotenv() in main.py).
    """
    os.environ.update(_ensure_pulumi_env())

def _win_path(p: str) -> str:
    # Convert Git Bash style /c/... to C:\...
    if p and p.startswith("/c/"):
        return "C:\\" + p[3:].replace("/", "\\")
    return p

def _ensure_pulumi_env() -> dict:
    env = os.environ.copy()
    # Secrets provider for the local backend; the storage keys are stored encrypted with it
    env.setdefault("PULUMI_SECRETS_PROVIDER", "passphrase")
    env.setdefault("PULUMI_CONFIG_PASSPHRASE", "local-dev-only")

    state_raw = _win_path(os.getenv("PULUMI_STATE_DIR", str(Path.cwd() / "pulumi-state")))
    state_dir = Path(state_raw).resolve()
    state_dir.mkdir(parents=True, exist_ok=True)

    # IMPORTANT: use two slashes => file://C:/... to avoid C:/C: duplication
    env["PULUMI_BACKEND_URL"] = "file://" + state_dir.as_posix()

    home_raw = os.getenv("PULUMI_HOME")
    if home_raw:
        pulumi_home = Path(_win_path(home_raw)).resolve()
    else:
        pulumi_home = Path.home() / ".pulumi"
    pulumi_home.mkdir(parents=True, exist_ok=True)
    env["PULUMI_HOME"] = str(pulumi_home)

    logger.debug("Using PULUMI_BACKEND_URL = %s", env["PULUMI_BACKEND_URL"])
    logger.debug("Using PULUMI_HOME        = %s", env["PULUMI_HOME"])
    return env

def _get_work_dir() -> Path:
    """Get Pulumi work directory from .env file, or use default"""
    work_dir_raw = os.getenv("PULUMI_WORK_DIR", str(Path.cwd() / "pulumi-work"))
    work_dir = Path(_win_path(work_dir_raw)).resolve()
    work_dir.mkdir(parents=True, exist_ok=True)
    return work_dir

def _stack_name(project: str, env_name: str) -> str:
    return safe_name(f"{project}-{env_name}")

def _stack(project: str, env_name: str, program):
    pulumi_env = _ensure_pulumi_env()
    os.environ.update(pulumi_env)  # make sure the CLI child sees our env

    stack = auto.create_or_select_stack(
        stack_name=_stack_name(project, env_name),
        project_name=safe_name(project),
        program=program,
        work_dir=str(_get_work_dir()),
    )
    return stack, pulumi_env

def _explain_failure(error_msg: str) -> str:
    if "StorageAccountAlreadyTaken" in error_msg or "already taken" in error_msg.lower():
        return (
            "Storage account name is already taken. Storage account names must be globally unique. "
            "Solution: change log_storage_account / diagnostics_storage_account in the cluster settings."
        )
    if "QuotaExceeded" in error_msg or "OperationNotAllowed" in error_msg:
        return (
            "Azure quota exceeded. The scale set needs more cores than the subscription allows in this "
            "region. Solution: lower vm_capacity, pick a smaller vm_sku or request a quota increase."
        )
    if "RequestDisallowedByAzure" in error_msg:
        return (
            "Azure subscription policy blocked this region. "
            "Solution: Try a different region like 'eastus', 'westus2', or 'centralus'."
        )
    if "DnsRecordInUse" in error_msg or "DnsRecordInUseByAnotherPublicIpAddress" in error_msg:
        return (
            "The public IP DNS label is already in use in this region. Solution: change dns_label."
        )
    return f"Deployment failed: {error_msg}"

def _unwrap(x):
    if hasattr(x, "value"):
        return _unwrap(x.value)
    if isinstance(x, dict):
        return {k: _unwrap(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return type(x)(_unwrap(v) for v in x)
    return x

class PulumiEngine:
    @staticmethod
    def _set_config(stack, cluster: ClusterRequest):
        stack.set_config("azure-native:location", auto.ConfigValue(value=cluster.settings.location))

    @staticmethod
    def preview(request: Dict[str, Any]):
        cluster = ClusterRequest.model_validate(request)

        # Validate payload first
        validation = PayloadValidator.validate(request)
        if not validation["valid"]:
            return {"preview": True, "changeSummary": None, "validation": validation}

        program = build_pulumi_program(request)
        stack, _ = _stack(cluster.project, cluster.env, program)
        PulumiEngine._set_config(stack, cluster)
        res = stack.preview(on_output=logger.info)

        return {
            "preview": True,
            "changeSummary": res.change_summary,
            "validation": validation,
        }

    @staticmethod
    def up(request: Dict[str, Any]):
        cluster = ClusterRequest.model_validate(request)

        validation = PayloadValidator.validate(request)
        if not validation["valid"]:
            raise ValueError("Invalid cluster request: " + "; ".join(validation["errors"]))

        program = build_pulumi_program(request)
        stack, _ = _stack(cluster.project, cluster.env, program)
        PulumiEngine._set_config(stack, cluster)

        try:
            up_res = stack.up(on_output=logger.info)
        except Exception as e:
            error_msg = str(e.args[0]) if e.args else str(e)
            logger.error("pulumi up failed for %s", _stack_name(cluster.project, cluster.env))
            raise ValueError(_explain_failure(error_msg)) from e

        # Secret outputs stay masked unless the caller reads them from the stack
        outputs = {
            k: ("[secret]" if getattr(v, "secret", False) else _unwrap(v))
            for k, v in (up_res.outputs or {}).items()
        }

        duration_sec = None
        resource_changes = None
        if getattr(up_res, "summary", None):
            s = up_res.summary
            resource_changes = getattr(s, "resource_changes", None)
            if s.start_time and s.end_time:
                duration_sec = (s.end_time - s.start_time).total_seconds()

        return {
            "preview": False,
            "outputs": outputs,
            "summary": {
                "resources": resource_changes,
                "duration_sec": duration_sec,
            },
        }

    @staticmethod
    def _get_azure_token(client_id: str, client_secret: str, tenant_id: str) -> str:
        """Get Azure AD access token for Resource Manager API"""
        url = f"https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
        data = {
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": "https://management.azure.com/.default",
            "grant_type": "client_credentials"
        }
        response = requests.post(url, data=data, timeout=30)
        response.raise_for_status()
        return response.json()["access_token"]

    @staticmethod
    def _delete_resource_group_direct(resource_group: str, creds: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Delete resource group directly via Azure REST API"""
        if not creds:
            return {"deleted": False, "message": "Azure credentials required for direct deletion"}

        try:
            token = PulumiEngine._get_azure_token(
                creds["clientId"],
                creds["clientSecret"],
                creds["tenantId"]
            )
        except requests.RequestException as e:
            return {"deleted": False, "message": f"Could not authenticate against Azure AD: {e}"}

        url = (
            f"https://management.azure.com/subscriptions/{creds['subscriptionId']}"
            f"/resourcegroups/{resource_group}?api-version=2021-04-01"
        )
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }
        response = requests.delete(url, headers=headers, timeout=60)

        if response.status_code == 202:
            return {
                "deleted": True,
                "message": f"Resource group '{resource_group}' deletion initiated. This may take 10-20 minutes."
            }
        elif response.status_code == 200:
            return {
                "deleted": True,
                "message": f"Resource group '{resource_group}' deleted successfully."
            }
        elif response.status_code == 404:
            return {
                "deleted": False,
                "message": f"Resource group '{resource_group}' not found (may already be deleted)."
            }
        else:
            return {
                "deleted": False,
                "message": f"Failed to delete resource group. Status: {response.status_code}",
                "error": response.text
            }

    @staticmethod
    def destroy(project: str, env_name: str, resource_group: str, creds: Optional[Dict[str, Any]] = None):
        def program(): pass

        try:
            stack, _ = _stack(project, env_name, program)
        except Exception as e:
            logger.warning("Stack %s not found: %s", _stack_name(project, env_name), e)
            if creds:
                return {
                    "destroyed": False,
                    "pulumi_stack": "not_found",
                    "attempting_direct_deletion": True,
                    **PulumiEngine._delete_resource_group_direct(resource_group, creds)
                }
            return {
                "destroyed": False,
                "message": f"Stack '{_stack_name(project, env_name)}' not found and no credentials provided for direct deletion.",
                "error": str(e)
            }

        try:
            res = stack.destroy(on_output=logger.info)
        except Exception as e:
            logger.error("pulumi destroy failed for %s: %s", stack.name, e)
            if creds:
                direct_result = PulumiEngine._delete_resource_group_direct(resource_group, creds)
                return {
                    "destroyed": direct_result.get("deleted", False),
                    "pulumi_destroy_failed": True,
                    "error": str(e),
                    **direct_result
                }
            return {
                "destroyed": False,
                "error": str(e),
                "message": "Destroy failed. Some resources may still exist. Provide credentials to attempt direct deletion."
            }

        deleted_count = 0
        if getattr(res, "summary", None) and res.summary.resource_changes:
            deleted_count = res.summary.resource_changes.get("delete", 0)

        stack.workspace.remove_stack(stack.name)

        return {
            "destroyed": True,
            "resources_deleted": deleted_count,
            "message": f"Destroyed {deleted_count} resources via Pulumi.",
            "resource_group": resource_group,
        }
