"""
Environment variable loading utility.

Reads ``KEY=value`` files (``env_var.env``) into ``os.environ`` before the
Django settings module resolves its configuration.
"""
import os
import logging

logger = logging.getLogger(__name__)


def _clean_value(raw_value):
    value = raw_value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1]
    return value


def load_env_from_file(file_path, override=False):
    """
    Load environment variables from a file.

    Lines may carry an ``export`` prefix and quoted values. Blank lines and
    ``#`` comments are ignored; lines without ``=`` are reported and skipped.

    Args:
        file_path: Path to the environment variable file.
        override: Replace variables already present in the environment.

    Returns:
        True if the file was read, False if it is missing or unreadable.
    """
    if not os.path.exists(file_path):
        logger.warning(f"Environment file not found: {file_path}")
        return False

    try:
        with open(file_path, 'r') as f:
            lines = f.readlines()
    except OSError as e:
        logger.error(f"Error reading environment file {file_path}: {e}")
        return False

    loaded = 0
    for line_no, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        if line.startswith('export '):
            line = line[len('export '):]
        if '=' not in line:
            logger.warning(f"Skipping malformed line {line_no} in {file_path}")
            continue

        key, value = line.split('=', 1)
        key = key.strip()
        if not key:
            logger.warning(f"Skipping line {line_no} in {file_path}: empty key")
            continue
        if not override and key in os.environ:
            continue
        os.environ[key] = _clean_value(value)
        loaded += 1

    logger.info(f"Loaded {loaded} environment variables from {file_path}")
    return True
