"""Actionable error catalog for remotedeploy."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "invalid_repository_url": {
        "what": "Invalid repository URL: {url}",
        "next": "Use an HTTPS URL such as `https://github.com/owner/repo.git`.",
    },
    "private_key_not_found": {
        "what": "Private key file not found: {path}",
        "next": "Pass the path of an existing SSH private key with `--key`.",
    },
    "branch_not_found": {
        "what": "Branch `{branch}` does not exist in {url}.",
        "next": "Check the branch name or push it before deploying.",
    },
    "authentication_failed": {
        "what": "The git server rejected the credential for {url}.",
        "next": "Verify the access token and its repository read permission.",
    },
    "invalid_working_tree": {
        "what": "{path} exists but is not a git working tree.",
        "next": "Remove the directory or choose another `--workspace`.",
    },
    "no_build_context": {
        "what": "No Dockerfile found in {path} or its immediate subdirectories. Entries: {entries}",
        "next": "Add a Dockerfile at the repository root or one level below it.",
    },
    "ssh_unreachable": {
        "what": "Could not open an SSH session to {target}.",
        "next": "Check the host, the user, and that the key is authorized on the server.",
    },
    "unsupported_package_manager": {
        "what": "Remote host {host} has no supported package manager (apt-get, dnf, yum).",
        "next": "Install Docker and nginx manually, then re-run the deployment.",
    },
    "proxy_config_invalid": {
        "what": "nginx rejected the site configuration for {app}.",
        "next": "Inspect {path}.rejected on the host; the previous configuration was restored.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
