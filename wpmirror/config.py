from pathlib import Path
import dotenv
import logging
import os
from typing import Optional

from pydantic import BaseModel


ROOT = Path(__file__).parent.parent
SPECS = ROOT / 'specs'
DEFAULT_CONFIG_PATH = SPECS / 'endpoints.yaml'

dotenv.load_dotenv(ROOT / '.env')

# Logging configuration
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for the given name"""
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    return logger


# WordPress REST settings
WORDPRESS_API_PATH = '/wp-json/wp/v2/'
WORDPRESS_API_VERSION = 'v2'
PAGE_SIZE = 100
FIELD_REFERENCE = {
    'posts': 'https://developer.wordpress.org/rest-api/reference/posts/',
    'pages': 'https://developer.wordpress.org/rest-api/reference/pages/',
    'media': 'https://developer.wordpress.org/rest-api/reference/media/',
}
REFRESH_FREQUENCY = 'as needed'

# Retry settings (fixed delay, no backoff growth)
DEFAULT_FETCH_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 2.0

# Pull request titles
COMMIT_TITLE_POSTS = 'Wordpress Posts Update'
COMMIT_TITLE_PAGES = 'Wordpress Pages Update'
COMMIT_TITLE_MEDIA = 'Wordpress Media Update'

GITHUB_API_URL = 'https://api.github.com'
SLACK_API_URL = 'https://slack.com/api'


class GitHubCommitter(BaseModel):
    """Author/committer identity used for pull request commits"""
    name: str
    email: str


def get_github_token() -> str:
    """Get the GitHub token used to write to destination repositories"""
    token = os.environ.get('GITHUB_TOKEN')
    if not token:
        raise ValueError('Missing GITHUB_TOKEN environment variable')
    return token

def get_github_committer() -> GitHubCommitter:
    """Get the committer identity from the environment"""
    return GitHubCommitter(
        name=os.environ.get('GITHUB_NAME', ''),
        email=os.environ.get('GITHUB_EMAIL', ''),
    )

def get_slack_token() -> Optional[str]:
    """
    Get the Slack bot token.
    Returns:
        str | None: The token, or None when Slack reporting is not configured
    """
    token = os.environ.get('SLACKBOT_TOKEN')
    if not token:
        # developers that don't set the creds can still use the rest of the code
        logger.error('You need .env to contain "SLACKBOT_TOKEN" to use slackbot features.')
        return None
    return token

def get_default_debug_channel() -> Optional[str]:
    """
    Slack channel for run errors when the endpoints file names none, or
    could not be loaded.
    """
    return os.environ.get('SLACK_DEBUG_CHANNEL') or None

def is_debug_mode() -> bool:
    """
    Check if the run is in local/debug mode.
    Returns:
        bool: True when the `debug` environment variable is "true"
    """
    return os.environ.get('debug', '').lower() == 'true'
