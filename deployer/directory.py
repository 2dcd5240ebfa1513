"""Virtual directory tree built from flat object-storage keys.

Object storage has no directories, only keys. Deployments are laid out as::

    <airnodeAddress>/<stage>/<versionTimestamp>/{config.json, secrets.env, default.tfstate}

and directory marker objects (keys ending in ``/``) may exist on their own.
Everything here is pure; the storage gateways feed it their listings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from deployer.exceptions import MalformedTreeError

CONFIG_FILENAME = "config.json"
SECRETS_FILENAME = "secrets.env"
TF_STATE_FILENAME = "default.tfstate"

MANDATORY_DEPLOYMENT_FILES = (CONFIG_FILENAME, SECRETS_FILENAME)


@dataclass
class File:
    bucket_key: str


@dataclass
class Directory:
    bucket_key: str
    children: Dict[str, "FileSystemItem"] = field(default_factory=dict)


FileSystemItem = Union[Directory, File]
DirectoryStructure = Dict[str, FileSystemItem]


def _split_path(path: str) -> List[str]:
    """Split a key on ``/`` keeping the trailing slash on the last segment.

    ``"a/b/"`` gives ``["a", "b/"]`` and ``"a/b"`` gives ``["a", "b"]``.
    """
    segments = path.split("/")
    if len(segments) > 1 and segments[-1] == "":
        segments = segments[:-1]
        segments[-1] = segments[-1] + "/"
    return segments


def build_directory_structure(
    paths: Iterable[str], structure: Optional[DirectoryStructure] = None
) -> DirectoryStructure:
    """Translate a flat list of bucket keys into a directory tree.

    Args:
        paths: Object keys as returned by a bucket listing
        structure: Existing tree to extend in place; a new one when omitted

    Returns:
        The tree, keyed by the first path segment
    """
    root: DirectoryStructure = {} if structure is None else structure

    for path in paths:
        segments = _split_path(path)
        level = root
        key_parts: List[str] = []

        for index, segment in enumerate(segments):
            terminal = index == len(segments) - 1
            is_directory = not terminal or segment.endswith("/")
            name = segment.rstrip("/")
            key_parts.append(name)

            if not is_directory:
                level.setdefault(name, File(bucket_key="/".join(key_parts)))
                break

            node = level.get(name)
            if not isinstance(node, Directory):
                # A directory key wins over a file key with the same name
                node = Directory(bucket_key="/".join(key_parts) + "/")
                level[name] = node
            level = node.children

    return root


def _require_directory(item: FileSystemItem, path: str) -> Directory:
    if not isinstance(item, Directory):
        raise MalformedTreeError(
            f"Invalid directory structure, '{path}' should be a directory",
            bucket_key=item.bucket_key,
        )
    if not item.children:
        raise MalformedTreeError(
            f"Invalid directory structure, '{item.bucket_key}' should not be empty",
            bucket_key=item.bucket_key,
        )
    return item


def get_address_directory(
    structure: DirectoryStructure, airnode_address: str
) -> Optional[Directory]:
    """Return the directory of an Airnode address or ``None`` when absent.

    Raises:
        MalformedTreeError: the entry is a file or an empty directory
    """
    item = structure.get(airnode_address)
    if item is None:
        return None
    return _require_directory(item, airnode_address)


def get_stage_directory(
    structure: DirectoryStructure, airnode_address: str, stage: str
) -> Optional[Directory]:
    """Return the directory of an address/stage pair or ``None`` when absent.

    Raises:
        MalformedTreeError: the address or stage entry is a file or an empty directory
    """
    address_directory = get_address_directory(structure, airnode_address)
    if address_directory is None:
        return None

    item = address_directory.children.get(stage)
    if item is None:
        return None
    return _require_directory(item, f"{airnode_address}/{stage}")


def gather_bucket_keys(directory: Directory) -> List[str]:
    """Return the directory key followed by every key beneath it."""
    keys = [directory.bucket_key]
    for item in directory.children.values():
        if isinstance(item, File):
            keys.append(item.bucket_key)
        else:
            keys.extend(gather_bucket_keys(item))
    return keys


def _version_sort_key(name: str) -> Tuple[int, int, str]:
    if name.isdigit():
        return (1, int(name), name)
    return (0, 0, name)


def sort_versions(names: Iterable[str]) -> List[str]:
    """Sort version directory names oldest first.

    Numeric timestamps compare by value so a digit-count rollover cannot
    reorder them; any non-numeric name sorts below every timestamp.
    """
    return sorted(names, key=_version_sort_key)


def get_latest_version(stage_directory: Directory) -> str:
    versions = sort_versions(stage_directory.children)
    if not versions:
        raise MalformedTreeError(
            f"Invalid directory structure, '{stage_directory.bucket_key}' should not be empty",
            bucket_key=stage_directory.bucket_key,
        )
    return versions[-1]


def get_missing_files(structure: DirectoryStructure) -> Dict[str, Dict[str, List[str]]]:
    """Report mandatory files missing from the latest version of each deployment.

    Returns:
        ``{address: {stage: [missing bucket keys]}}`` for every address/stage
        whose latest version lacks ``config.json`` or ``secrets.env``
    """
    missing: Dict[str, Dict[str, List[str]]] = {}

    for address, address_item in structure.items():
        if not isinstance(address_item, Directory):
            continue
        for stage, stage_item in address_item.children.items():
            if not isinstance(stage_item, Directory) or not stage_item.children:
                continue
            latest = get_latest_version(stage_item)
            version_item = stage_item.children[latest]
            present = version_item.children if isinstance(version_item, Directory) else {}
            absent = [
                f"{address}/{stage}/{latest}/{filename}"
                for filename in MANDATORY_DEPLOYMENT_FILES
                if filename not in present
            ]
            if absent:
                missing.setdefault(address, {})[stage] = absent

    return missing
