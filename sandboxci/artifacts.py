"""
Contract artifacts for explorer auto-verification.

After a deployment script has run, the toolchain leaves one
``broadcast/<script>/<chain id>/run-latest.json`` per chain and the compiler
output under ``out/``. This module pairs every deployed contract with its
compiler artifact and reshapes it into the verification input the backend
expects, grouped by contract name with one address per chain.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import BROADCAST_DIRNAME, BUILD_OUT_DIRNAME, DEFAULT_LANGUAGE, RUN_LATEST_FILENAME

log = logging.getLogger(__name__)

OUTPUT_SELECTION = [
    "abi",
    "devdoc",
    "userdoc",
    "storageLayout",
    "evm.bytecode.object",
    "evm.bytecode.sourceMap",
    "evm.bytecode.linkReferences",
    "evm.deployedBytecode.object",
    "evm.deployedBytecode.sourceMap",
    "evm.deployedBytecode.linkReferences",
    "evm.deployedBytecode.immutableReferences",
    "metadata",
]

# library sources referenced as lib/<pkg>/... may be installed as node modules
_LIB_PREFIX = "lib/"


def find_directory(name: str, working_dir: str) -> Optional[Path]:
    """Return ``working_dir/name`` if it is a directory, else None."""
    candidate = Path(working_dir) / name
    return candidate if candidate.is_dir() else None


def read_json(path: str) -> Any:
    """Parse a JSON file, returning None (and logging) when it cannot be read."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as exc:
        log.warning("Error reading JSON file at %s: %s", path, exc)
        return None


def find_artifact_path(out_dir: str, contract_name: str) -> Optional[Path]:
    """Find ``<contract_name>.json`` anywhere under ``out_dir``.

    Directories are searched in sorted order; the first match wins.
    """
    target = f"{contract_name}.json"
    for dirpath, dirnames, filenames in os.walk(out_dir):
        dirnames.sort()
        if target in filenames:
            return Path(dirpath) / target
    return None


def _read_source(project_root: Path, source_path: str) -> Optional[str]:
    candidates = [project_root / source_path]
    if source_path.startswith(_LIB_PREFIX):
        candidates.append(project_root / "node_modules" / source_path[len(_LIB_PREFIX):])
    for candidate in candidates:
        try:
            return candidate.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            log.debug("Cannot read source %s: %s", candidate, exc)
    return None


def process_sources(sources: Optional[Dict[str, Any]], project_root: str = ".") -> str:
    """Return the ``{path: {content}}`` source map as an indented JSON string.

    Content embedded in the compiler metadata is used as is; otherwise the
    file is read relative to ``project_root``. Unreadable sources get a
    placeholder so the map stays complete.
    """
    if not sources:
        return "{}"
    root = Path(project_root)
    out: Dict[str, Dict[str, str]] = {}
    for source_path, entry in sources.items():
        content = entry.get("content") if isinstance(entry, dict) else None
        if not content:
            content = _read_source(root, source_path)
        if content is None:
            log.warning("Source %s not available", source_path)
            content = f"// Content for {source_path} not available"
        out[source_path] = {"content": content}
    return json.dumps(out, indent=2)


def process_remappings(remappings: Any) -> str:
    if not isinstance(remappings, list):
        return "[]"
    return json.dumps(remappings, indent=2)


def build_contract_entry(
    artifact: Dict[str, Any],
    contract_name: str,
    contract_address: str,
    project_root: str = ".",
) -> Dict[str, Any]:
    """Shape one compiler artifact into a verification request."""
    metadata = artifact.get("metadata") or {}
    settings = metadata.get("settings") or {}
    return {
        "contractAddress": contract_address,
        "contractName": contract_name,
        "artifact": {
            "deployedBytecode": artifact.get("bytecode") or "",
            "abi": artifact.get("abi") or [],
            "language": metadata.get("language") or DEFAULT_LANGUAGE,
            "settings": {
                "evmVersion": settings.get("evmVersion") or "",
                "metadata": settings.get("metadata") or {},
                "libraries": settings.get("libraries") or {},
                "optimizer": settings.get("optimizer") or {},
                "outputSelection": {"*": {"*": list(OUTPUT_SELECTION)}},
                "remappings": process_remappings(settings.get("remappings")),
            },
            "sources": process_sources(metadata.get("sources"), project_root),
        },
    }


def process_directory(run_dir: str, out_dir: str, project_root: str = ".") -> List[Dict[str, Any]]:
    """Collect verification entries for the deployments in one chain directory.

    Transactions without a contract name or address, contracts without a
    compiler artifact and artifacts without metadata are skipped.
    """
    run_latest = read_json(os.path.join(run_dir, RUN_LATEST_FILENAME))
    if not isinstance(run_latest, dict):
        log.warning("Failed to read %s in %s", RUN_LATEST_FILENAME, run_dir)
        return []
    entries: List[Dict[str, Any]] = []
    for tx in run_latest.get("transactions") or []:
        name = tx.get("contractName")
        address = tx.get("contractAddress")
        if not name or not address:
            continue
        artifact_path = find_artifact_path(out_dir, name)
        if artifact_path is None:
            log.info("Artifact for contract %s not found", name)
            continue
        artifact = read_json(str(artifact_path))
        if not isinstance(artifact, dict) or not artifact.get("metadata"):
            log.info("Artifact for contract %s has no metadata", name)
            continue
        entries.append(build_contract_entry(artifact, name, address, project_root))
    return entries


def process_all_directories(
    broadcast_dir: str,
    out_dir: str,
    *,
    script: Optional[str] = None,
    project_root: str = ".",
) -> Dict[str, List[Dict[str, Any]]]:
    """Walk ``broadcast/<script>/<chain id>`` and return entries keyed by chain id.

    With ``script`` only that script's directory is read.
    """
    broadcast = Path(broadcast_dir)
    if script is not None:
        scripts = [broadcast / script]
    else:
        scripts = sorted(p for p in broadcast.iterdir() if p.is_dir())
    result: Dict[str, List[Dict[str, Any]]] = {}
    for script_dir in scripts:
        if not script_dir.is_dir():
            log.warning("No broadcast directory for script %s", script_dir.name)
            continue
        for chain_dir in sorted(p for p in script_dir.iterdir() if p.is_dir()):
            if not (chain_dir / RUN_LATEST_FILENAME).is_file():
                continue
            log.info("Processing directory: %s/%s", script_dir.name, chain_dir.name)
            result.setdefault(chain_dir.name, []).extend(
                process_directory(str(chain_dir), out_dir, project_root)
            )
    return result


def group_by_contract_name(data: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    """Merge per-chain entries into ``{name: {..., contractAddresses: {chain: address}}}``.

    The first entry seen for a name supplies the artifact.
    """
    grouped: Dict[str, Dict[str, Any]] = {}
    for chain_id, entries in data.items():
        for entry in entries:
            rest = dict(entry)
            name = rest.pop("contractName")
            address = rest.pop("contractAddress")
            slot = grouped.setdefault(name, {**rest, "contractAddresses": {}})
            slot["contractAddresses"][chain_id] = address
    return grouped


def collect_contract_artifacts(working_dir: str, *, script: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
    """Grouped verification artifacts for a project, or ``{}`` when the
    project has no ``broadcast``/``out`` directories."""
    broadcast = find_directory(BROADCAST_DIRNAME, working_dir)
    out = find_directory(BUILD_OUT_DIRNAME, working_dir)
    if broadcast is None or out is None:
        log.info("No %s or %s directory in %s; skipping contract artifacts", BROADCAST_DIRNAME, BUILD_OUT_DIRNAME, working_dir)
        return {}
    data = process_all_directories(str(broadcast), str(out), script=script, project_root=working_dir)
    grouped = group_by_contract_name(data)
    log.info("Collected artifacts for %d contracts", len(grouped))
    return grouped
