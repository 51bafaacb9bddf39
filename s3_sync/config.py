"""
Module for loading sync configuration from a JSON file.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigInvalid
from .models import ParamRule, SyncTarget

logger = logging.getLogger(__name__)


@dataclass
class SyncConfig:
    """Typed configuration with every default applied."""
    targets: List[SyncTarget] = field(default_factory=list)
    service_path: Path = field(default_factory=Path.cwd)
    region: Optional[str] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_concurrency: int = 5
    log_dir: Optional[Path] = None


def _parse_param_rules(raw: Dict[str, Any], index: int) -> List[ParamRule]:
    """Collect rules from the ``params`` and ``paramRules`` entries of a target.

    ``params`` is a list of single-key mappings ``{glob: params}``;
    ``paramRules`` is a list of ``{"glob": ..., "params": ...}`` objects.
    """
    rules = []
    for entry in raw.get('params') or []:
        if not isinstance(entry, dict) or len(entry) != 1:
            raise ConfigInvalid(f"s3Sync[{index}].params entries must be single-key mappings")
        glob, params = next(iter(entry.items()))
        rules.append(ParamRule(glob=glob, params=dict(params or {})))

    for entry in raw.get('paramRules') or []:
        if not isinstance(entry, dict) or 'glob' not in entry:
            raise ConfigInvalid(f"s3Sync[{index}].paramRules entries need a glob")
        rules.append(ParamRule(glob=entry['glob'], params=dict(entry.get('params') or {})))
    return rules


def parse_target(raw: Dict[str, Any], index: int = 0) -> SyncTarget:
    """Build a SyncTarget from one configuration entry.

    Args:
        raw: Entry of the ``s3Sync`` list
        index: Position of the entry, used in error messages

    Returns:
        Validated SyncTarget

    Raises:
        ConfigInvalid: If required keys are missing or values are invalid
    """
    if not isinstance(raw, dict):
        raise ConfigInvalid(f"s3Sync[{index}] must be an object")

    local_dir = raw.get('localDir') or raw.get('localDirectory')
    bucket = raw.get('bucketName')
    if not bucket or not local_dir:
        raise ConfigInvalid(f"s3Sync[{index}] requires bucketName and localDir")

    return SyncTarget(
        local_directory=Path(local_dir),
        bucket_name=bucket,
        bucket_prefix=raw.get('bucketPrefix', ''),
        acl=raw.get('acl', 'private'),
        follow_symlinks=bool(raw.get('followSymlinks', False)),
        delete_removed=bool(raw.get('deleteRemoved', True)),
        artifact=bool(raw.get('artifact', False)),
        param_rules=tuple(_parse_param_rules(raw, index))
    )


def parse_config(data: Dict[str, Any], base_dir: Optional[Path] = None) -> SyncConfig:
    """Build a SyncConfig from decoded JSON.

    Args:
        data: Decoded configuration
        base_dir: Directory relative paths are resolved against

    Returns:
        SyncConfig object
    """
    if not isinstance(data, dict):
        raise ConfigInvalid("Configuration must be a JSON object")

    base_dir = base_dir or Path.cwd()
    raw_targets = data.get('s3Sync')
    if raw_targets is None:
        raw_targets = []
    if not isinstance(raw_targets, list):
        raise ConfigInvalid("s3Sync must be a list")

    service_path = Path(data.get('service_path', '.'))
    if not service_path.is_absolute():
        service_path = base_dir / service_path

    log_dir = data.get('log_dir')
    if log_dir is not None:
        log_dir = Path(log_dir)
        if not log_dir.is_absolute():
            log_dir = base_dir / log_dir

    max_concurrency = data.get('max_concurrency', 5)
    if not isinstance(max_concurrency, int) or max_concurrency < 1:
        raise ConfigInvalid("max_concurrency must be a positive integer")

    return SyncConfig(
        targets=[parse_target(raw, i) for i, raw in enumerate(raw_targets)],
        service_path=service_path,
        region=data.get('region'),
        profile=data.get('profile'),
        endpoint_url=data.get('endpoint_url'),
        max_concurrency=max_concurrency,
        log_dir=log_dir
    )


def load_config(config_file: Path) -> SyncConfig:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to config file

    Returns:
        SyncConfig object

    Raises:
        ConfigInvalid: If the file is missing, unreadable or invalid
    """
    config_file = Path(config_file)
    try:
        with open(config_file) as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error loading config file: {e}")
        raise ConfigInvalid(f"Cannot load config file {config_file}: {e}") from e

    config = parse_config(data, base_dir=config_file.parent)
    logger.debug(f"Loaded {len(config.targets)} sync targets from {config_file}")
    return config
