"""Compiled contract artifact loading for contract-deployments library."""

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from eth_abi import encode
from eth_abi.exceptions import EncodingError

from .exceptions import ArtifactNotFoundError, ConfigError
from .types import ContractArtifact


def find_artifact_file(artifacts_dir: Path, contract_name: str) -> Path:
    """
    Locate a hardhat artifact file for a contract.

    Hardhat lays artifacts out as artifacts/{sourceName}/{contractName}.json,
    next to a {contractName}.dbg.json file pointing at the build-info.

    Args:
        artifacts_dir: Path to the hardhat artifacts directory
        contract_name: Contract name, e.g. "OurToken"

    Returns:
        Path to the artifact JSON file

    Raises:
        ArtifactNotFoundError: If no artifact exists for the contract
        ConfigError: If several sources define a contract with that name
    """
    if not artifacts_dir.exists():
        raise ArtifactNotFoundError(
            f"Artifacts directory not found at {artifacts_dir}. Compile the contracts first."
        )

    matches = [
        p
        for p in sorted(artifacts_dir.rglob(f"{contract_name}.json"))
        if "build-info" not in p.parts
    ]
    if not matches:
        raise ArtifactNotFoundError(
            f"No artifact for contract '{contract_name}' under {artifacts_dir}"
        )
    if len(matches) > 1:
        raise ConfigError(
            f"Contract name '{contract_name}' is ambiguous: "
            + ", ".join(str(p.relative_to(artifacts_dir)) for p in matches)
        )
    return matches[0]


def _load_build_info(artifact_file: Path) -> Optional[Dict[str, Any]]:
    dbg_file = artifact_file.with_name(f"{artifact_file.stem}.dbg.json")
    try:
        with open(dbg_file) as f:
            dbg = json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return None

    build_info_ref = dbg.get("buildInfo")
    if not build_info_ref:
        return None

    # buildInfo is relative to the dbg file's directory
    build_info_file = (dbg_file.parent / build_info_ref).resolve()
    try:
        with open(build_info_file) as f:
            return json.load(f)
    except (FileNotFoundError, json.JSONDecodeError):
        return None


def load_artifact(artifacts_dir: Path, contract_name: str) -> ContractArtifact:
    """
    Load a compiled contract artifact.

    Args:
        artifacts_dir: Path to the hardhat artifacts directory
        contract_name: Contract name, e.g. "OurToken"

    Returns:
        ContractArtifact; compiler_version and standard_json_input are set
        only when the build-info file could be resolved

    Raises:
        ArtifactNotFoundError: If the artifact is missing or has no bytecode
    """
    artifact_file = find_artifact_file(artifacts_dir, contract_name)
    with open(artifact_file) as f:
        data = json.load(f)

    bytecode = data.get("bytecode")
    if not bytecode or bytecode == "0x":
        raise ArtifactNotFoundError(
            f"Artifact {artifact_file} has no creation bytecode (abstract contract or interface?)"
        )

    compiler_version = None
    standard_json_input = None
    build_info = _load_build_info(artifact_file)
    if build_info is not None:
        compiler_version = build_info.get("solcLongVersion")
        standard_json_input = build_info.get("input")

    return ContractArtifact(
        contract_name=data.get("contractName", contract_name),
        source_name=data.get("sourceName", ""),
        abi=data.get("abi", []),
        bytecode=bytecode,
        compiler_version=compiler_version,
        standard_json_input=standard_json_input,
    )


def _abi_type(param: Dict[str, Any]) -> str:
    """Canonical ABI type string, expanding tuples into (t1,t2,...) form."""
    type_str = param["type"]
    if type_str.startswith("tuple"):
        suffix = type_str[len("tuple"):]
        inner = ",".join(_abi_type(c) for c in param.get("components", []))
        return f"({inner}){suffix}"
    return type_str


def _coerce(abi_type: str, value: Any) -> Any:
    # Large integers are usually written as strings in JSON config files
    if isinstance(value, str) and abi_type.startswith(("uint", "int")) and "[" not in abi_type:
        return int(value, 0)
    return value


def constructor_inputs(abi: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for item in abi:
        if item.get("type") == "constructor":
            return item.get("inputs", [])
    return []


def encode_constructor_args(abi: List[Dict[str, Any]], args: Sequence[Any]) -> bytes:
    """
    ABI-encode constructor arguments.

    Args:
        abi: Contract ABI
        args: Constructor arguments, in declaration order

    Returns:
        Encoded arguments (empty when the contract takes none)

    Raises:
        ConfigError: If the argument count or a value does not fit the constructor
    """
    inputs = constructor_inputs(abi)
    if len(inputs) != len(args):
        raise ConfigError(
            f"Constructor expects {len(inputs)} argument(s), got {len(args)}"
        )
    if not inputs:
        return b""

    types = [_abi_type(p) for p in inputs]
    try:
        values = [_coerce(t, v) for t, v in zip(types, args)]
        return encode(types, values)
    except (EncodingError, TypeError, ValueError, OverflowError) as e:
        raise ConfigError(f"Cannot encode constructor arguments {list(args)}: {e}") from e


def bytecode_hash(bytecode: str) -> str:
    """
    sha256 of the creation bytecode, independent of 0x prefix and case.

    Raises:
        ConfigError: If the bytecode still has unlinked library placeholders
                     (__$...$__) or is otherwise not hex
    """
    normalized = bytecode.lower().removeprefix("0x")
    if "__" in normalized:
        raise ConfigError(
            "Bytecode references unlinked libraries; link them before deploying"
        )
    try:
        raw = bytes.fromhex(normalized)
    except ValueError as e:
        raise ConfigError(f"Bytecode is not valid hex: {e}") from e
    return hashlib.sha256(raw).hexdigest()
