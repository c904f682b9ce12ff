"""
Contract ABI and hardhat artifact loading
"""

import os
import json
import glob
from typing import Any, Dict, List

from .errors import NotFoundError

ABI_DIR = os.path.join(os.path.dirname(__file__), 'abi')


def get_contract_abi(file_path: str) -> List[Dict[str, Any]]:
    """Loads a contract ABI from a JSON artifact or a bare ABI list."""
    with open(file_path, 'r') as f:
        data = json.load(f)
    return data['abi'] if isinstance(data, dict) else data


def find_artifact(contract_name: str, artifacts_dir: str) -> str:
    """Locate artifacts/**/<contract_name>.json produced by hardhat compile"""
    pattern = os.path.join(artifacts_dir, '**', f'{contract_name}.json')
    matches = sorted(glob.glob(pattern, recursive=True))
    if not matches:
        raise NotFoundError(f"No compiled artifact for {contract_name} under {artifacts_dir}")
    return matches[0]


def load_artifact(contract_name: str, artifacts_dir: str) -> Dict[str, Any]:
    with open(find_artifact(contract_name, artifacts_dir), 'r') as f:
        return json.load(f)


def load_abi(contract_name: str, artifacts_dir: str = "artifacts") -> List[Dict[str, Any]]:
    """ABI for contract_name: packaged interface ABIs first, then compiled artifacts"""
    packaged = os.path.join(ABI_DIR, f'{contract_name}.json')
    if os.path.exists(packaged):
        return get_contract_abi(packaged)
    return get_contract_abi(find_artifact(contract_name, artifacts_dir))


def load_build_info(contract_name: str, artifacts_dir: str) -> Dict[str, Any]:
    """
    Load the solc build info referenced by a contract's .dbg.json file

    Returns:
        Build info with 'solcLongVersion' and the standard JSON 'input'
    """
    artifact_path = find_artifact(contract_name, artifacts_dir)
    dbg_path = artifact_path[:-len('.json')] + '.dbg.json'
    try:
        with open(dbg_path, 'r') as f:
            build_info_rel = json.load(f)['buildInfo']
    except (OSError, KeyError, ValueError) as e:
        raise NotFoundError(f"No build info reference for {contract_name}: {e}") from e
    build_info_path = os.path.normpath(os.path.join(os.path.dirname(dbg_path), build_info_rel))
    try:
        with open(build_info_path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise NotFoundError(f"Unreadable build info {build_info_path} for {contract_name}: {e}") from e
