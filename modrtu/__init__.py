"""
modrtu - Modbus RTU master over serial lines
"""

import os
import logging
from pathlib import Path
from dotenv import load_dotenv

__version__ = '0.2.0'

# Configure logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format=os.environ.get(
        'LOG_FORMAT',
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
)
logger = logging.getLogger(__name__)


def load_env_files():
    """Load environment variables from .env files in project directories."""
    # Try to load from current directory
    if load_dotenv(dotenv_path='.env'):
        logger.debug('Loaded .env from current directory')

    # Try to load from the project root
    project_env = Path(__file__).parent.parent / '.env'
    if project_env.exists() and load_dotenv(dotenv_path=project_env):
        logger.debug(f'Loaded .env from {project_env}')


# Load environment variables
load_env_files()

# Import components after environment is configured
from modrtu.config import PortConfig, load_port_configs  # noqa: E402
from modrtu.rtu import ModbusMaster, Status, create_master  # noqa: E402

__all__ = [
    'ModbusMaster',
    'PortConfig',
    'Status',
    'create_master',
    'load_port_configs',
    'load_env_files'
]
