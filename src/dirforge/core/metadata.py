"""Metadata file rendering for integrity directories.

Metadata files are YAML mappings, one per file, named after their level
(``workspace.yaml``, ``project.yaml`` ...). Values come from the caller
already expanded and are written as plain strings, quoted by the YAML
emitter wherever a reader would otherwise misinterpret them.
"""

import getpass
from datetime import UTC, datetime

import yaml

from dirforge.core.constants import METADATA_FILE_SUFFIX, METADATA_STANDARD_KEYS
from dirforge.core.schemas import DirectoryNode, MetadataLevel, MetadataStamp


def metadata_filename(level: MetadataLevel) -> str:
    """Return the file name for a metadata level."""
    if level is MetadataLevel.NONE:
        raise ValueError("Metadata level 'none' has no metadata file")
    return f"{level.value}{METADATA_FILE_SUFFIX}"


def metadata_entries(node: DirectoryNode, stamp: MetadataStamp) -> dict[str, str]:
    """Return the mapping written for a node.

    Standard keys come first (name, level, created_by, created), followed by
    the node's extra metadata in declaration order. Extra keys never
    override standard ones.
    """
    standard = (node.name, node.metadata_level.value, stamp.created_by, stamp.created_at)
    entries: dict[str, str] = dict(zip(METADATA_STANDARD_KEYS, standard, strict=True))
    for key, value in node.metadata.items():
        entries.setdefault(key, value)
    return entries


def render_metadata(node: DirectoryNode, stamp: MetadataStamp) -> str:
    """Render the metadata file for a node as a YAML document."""
    return yaml.safe_dump(
        metadata_entries(node, stamp),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def default_stamp() -> MetadataStamp:
    """Build a stamp from the current user and UTC time.

    Used when a caller does not expand the creation values itself.
    """
    try:
        actor = getpass.getuser()
    except (KeyError, OSError):
        actor = "unknown"
    created = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
    return MetadataStamp(created_by=actor, created_at=created)
