import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Config:
    # Basic Flask configuration
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    
    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or os.path.join('database', 'boutarchive.db')
    
    # Settings file (INI) relative to the project root
    CONFIG_FILE = os.environ.get('CONFIG_FILE') or os.path.join('config', 'config.txt')
    
    # Logging configuration
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FILE = os.environ.get('LOG_FILE') or 'boutarchive.log'
    USE_LOGURU = os.environ.get('USE_LOGURU', 'true').lower() == 'true'
    
    # Application settings
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB max request body
    
    # Monitor settings
    MONITOR_ENABLED = os.environ.get('MONITOR_ENABLED', 'true').lower() == 'true'
    
    # Download client defaults written into config.txt on first run.
    # Each entry becomes a [download_client:<name>] section; only enabled
    # clients are polled.
    DOWNLOAD_CLIENTS = {
        'qbittorrent': {
            'enabled': False,
            'protocol': 'qbittorrent',
            'host': 'localhost',
            'port': 8080,
            'username': 'admin',
            'password': 'adminadmin',
            'use_ssl': False,
            'verify_cert': True,
            'category': 'boutarchive',
            'remote_path': '',
            'local_path': '',
        },
        'transmission': {
            'enabled': False,
            'protocol': 'transmission',
            'host': 'localhost',
            'port': 9091,
            'username': '',
            'password': '',
            'use_ssl': False,
            'verify_cert': True,
            'category': 'boutarchive',
            'url_base': '/transmission',
            'remote_path': '',
            'local_path': '',
        },
        'sabnzbd': {
            'enabled': False,
            'protocol': 'sabnzbd',
            'host': 'localhost',
            'port': 8080,
            'api_key': '',  # SABnzbd uses API key instead of username/password
            'use_ssl': False,
            'verify_cert': True,
            'category': 'boutarchive',
            'remote_path': '',
            'local_path': '',
        },
    }
    
    # Download Queue Settings
    DOWNLOAD_QUEUE_SETTINGS = {
        'enabled': True,
        'poll_interval': 30,        # Seconds between polls of each client
        'max_poll_workers': 4,      # Concurrent client polls
        'max_import_workers': 2,    # Concurrent import runs
        'request_timeout': 15,      # Seconds per HTTP call to a client
    }
