"""
Configuration management and loading.

Reads the tracker's YAML settings: workspace, work day, idle threshold
and the project mapping used to allocate time.
"""

from dataclasses import dataclass, field
from datetime import time, timedelta, tzinfo
from pathlib import Path
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from claude_tracker.storage.db import DEFAULT_DB_PATH

DEFAULT_IDLE_THRESHOLD_MINUTES = 15
DEFAULT_DESCRIPTION = "Development"


def parse_time_of_day(value: str, name: str) -> time:
    """Parse an "HH:MM" string into a time.

    Raises:
        ValueError: If the value is not a valid 24-hour HH:MM string
    """
    # YAML 1.1 reads an unquoted 17:00 as the base-60 integer 1020
    if isinstance(value, int) and not isinstance(value, bool):
        if not 0 <= value < 24 * 60:
            raise ValueError(f"'{name}' is not a valid time of day: {value!r}")
        return time(value // 60, value % 60)
    if not isinstance(value, str):
        raise ValueError(f"'{name}' must be a string in HH:MM format")
    parts = value.split(":")
    if len(parts) != 2 or not all(p.isdigit() and len(p) == 2 for p in parts):
        raise ValueError(f"'{name}' must be in HH:MM format, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"'{name}' is not a valid time of day: {value!r}")
    return time(hour, minute)


@dataclass(frozen=True)
class WorkDayConfig:
    """Local start and end of the work day that gets allocated."""
    start: time
    end: time

    def __post_init__(self):
        """Validate the work day has a positive length."""
        if self.end <= self.start:
            raise ValueError("work_day end must be after start")


@dataclass(frozen=True)
class TrackerConfig:
    """Complete tracker configuration."""
    workspace_id: str
    work_day: WorkDayConfig
    project_mapping: Dict[str, str] = field(default_factory=dict)
    other_project_id: Optional[str] = None
    idle_threshold_minutes: int = DEFAULT_IDLE_THRESHOLD_MINUTES
    description: str = DEFAULT_DESCRIPTION
    timezone: Optional[str] = None
    database: str = DEFAULT_DB_PATH

    def __post_init__(self):
        """Validate scalar settings."""
        if not self.workspace_id:
            raise ValueError("workspace_id cannot be empty")
        if self.idle_threshold_minutes <= 0:
            raise ValueError("idle_threshold_minutes must be > 0")

    @property
    def idle_threshold(self) -> timedelta:
        """Idle threshold as a timedelta."""
        return timedelta(minutes=self.idle_threshold_minutes)

    @property
    def tzinfo(self) -> Optional[tzinfo]:
        """Configured timezone, or None for the system's local time."""
        if self.timezone is None:
            return None
        return ZoneInfo(self.timezone)


def load_tracker_config(path: str) -> TrackerConfig:
    """Load and validate tracker configuration from a YAML file.

    Strict validation ensures a typo never silently routes time to the
    wrong project or workspace.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated TrackerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Tracker config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {
        'workspace_id', 'work_day', 'projects', 'other_project_id',
        'idle_threshold_minutes', 'description', 'timezone', 'database'
    }
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    # Workspace
    if 'workspace_id' not in raw_config:
        raise ValueError("Missing required 'workspace_id'")
    workspace_id = raw_config['workspace_id']
    if not isinstance(workspace_id, str) or not workspace_id.strip():
        raise ValueError("'workspace_id' must be a non-empty string")

    # Work day
    if 'work_day' not in raw_config:
        raise ValueError("Missing required 'work_day' section")
    work_day = _parse_work_day(raw_config['work_day'])

    # Project mapping (exact path -> project id)
    projects_data = raw_config.get('projects') or {}
    if not isinstance(projects_data, dict):
        raise ValueError("'projects' must be a dictionary")
    project_mapping = {}
    for project_path, project_id in projects_data.items():
        if not isinstance(project_id, str) or not project_id.strip():
            raise ValueError(f"Project id for '{project_path}' must be a non-empty string")
        project_mapping[str(project_path)] = project_id

    other_project_id = raw_config.get('other_project_id')
    if other_project_id is not None:
        if not isinstance(other_project_id, str) or not other_project_id.strip():
            raise ValueError("'other_project_id' must be a non-empty string")

    idle_minutes = raw_config.get('idle_threshold_minutes', DEFAULT_IDLE_THRESHOLD_MINUTES)
    if isinstance(idle_minutes, bool) or not isinstance(idle_minutes, int) or idle_minutes <= 0:
        raise ValueError("'idle_threshold_minutes' must be a positive integer")

    description = raw_config.get('description', DEFAULT_DESCRIPTION)
    if not isinstance(description, str):
        raise ValueError("'description' must be a string")

    tz_name = raw_config.get('timezone')
    if tz_name is not None:
        if not isinstance(tz_name, str):
            raise ValueError("'timezone' must be a string")
        try:
            ZoneInfo(tz_name)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {tz_name!r}")

    database = raw_config.get('database', DEFAULT_DB_PATH)
    if not isinstance(database, str) or not database.strip():
        raise ValueError("'database' must be a non-empty string")

    return TrackerConfig(
        workspace_id=workspace_id,
        work_day=work_day,
        project_mapping=project_mapping,
        other_project_id=other_project_id,
        idle_threshold_minutes=idle_minutes,
        description=description,
        timezone=tz_name,
        database=database
    )


def _parse_work_day(data) -> WorkDayConfig:
    """Parse and validate the work_day section.

    Args:
        data: Raw work_day mapping

    Returns:
        Validated WorkDayConfig

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError("'work_day' must be a dictionary")

    allowed_keys = {'start', 'end'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in work_day: {unknown_keys}")

    for key in ('start', 'end'):
        if key not in data:
            raise ValueError(f"Missing required '{key}' in work_day")

    return WorkDayConfig(
        start=parse_time_of_day(data['start'], "work_day.start"),
        end=parse_time_of_day(data['end'], "work_day.end")
    )
