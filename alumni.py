#!/usr/bin/env python3
"""
Alumni Portal - client toolkit for the alumni-management backend.
Shared configuration and logging, the object graph used by the web layer,
and a command-line tool for the birthday notification admin.
"""

import argparse
import datetime
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional

from colorama import init, Fore, Style
from dotenv import load_dotenv

from alumni_api import AlumniAPI
from api_client import ApiClient, ApiError, build_api_url
from app.repositories import SessionRepository
from app.services import (
    AlumniSearchService, AuthService, BiografiProfileService, BirthdayService,
    BirthdaySettingsService, ValidationError,
)
from app.services.birthday_service import birthday_countdown_label, past_card_label
from wilayah_client import WilayahCache, WilayahClient

# Initialize colorama for cross-platform colored terminal output
init(autoreset=True)

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root ``alumni`` logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.WARNING)
    logger = logging.getLogger('alumni')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


logger = setup_logging()

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_CONFIG: Dict[str, Any] = {
    'api_url': 'http://localhost:8080/api',
    'backend_url': 'http://localhost:8080',
    'base_url': 'http://localhost:3000',
    'wilayah_api_url': None,
    'auth_login_endpoint': '/api/auth/login',
    'image_serve_endpoint': '/api/images',
    'max_image_size': 5 * 1024 * 1024,
    'default_page_size': 10,
    'birthday_upcoming_days': 30,
    'request_timeout': 15,
    'session_file': '.alumni_session.json',
}

# config key -> environment variable
ENV_OVERRIDES = {
    'api_url': 'ALUMNI_API_URL',
    'backend_url': 'ALUMNI_BACKEND_URL',
    'base_url': 'ALUMNI_BASE_URL',
    'wilayah_api_url': 'ALUMNI_WILAYAH_API_URL',
    'request_timeout': 'ALUMNI_REQUEST_TIMEOUT',
    'session_file': 'ALUMNI_SESSION_FILE',
}

STATUS_LABELS = {
    'PENDING': 'Menunggu',
    'SENT': 'Terkirim',
    'FAILED': 'Gagal',
    'EXCLUDED': 'Dikecualikan',
    'RESENT': 'Dikirim Ulang',
}


def load_config(config_path: str = 'config.json') -> Dict[str, Any]:
    """Load settings from *config_path*, the environment and the defaults.

    Precedence is environment > file > defaults.  A missing or unreadable
    file is treated as empty.
    """
    load_dotenv()
    file_config: Dict[str, Any] = {}
    if os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Could not read config file %s: %s", config_path, e)
            file_config = {}

    config = dict(DEFAULT_CONFIG)
    config.update({k: v for k, v in file_config.items() if v is not None})
    for key, env_var in ENV_OVERRIDES.items():
        if os.getenv(env_var):
            config[key] = os.getenv(env_var)

    try:
        config['request_timeout'] = int(config['request_timeout'])
    except (TypeError, ValueError):
        logger.warning("Invalid request_timeout %r, using default", config['request_timeout'])
        config['request_timeout'] = DEFAULT_CONFIG['request_timeout']
    if not config.get('wilayah_api_url'):
        config['wilayah_api_url'] = f"{config['api_url'].rstrip('/')}/wilayah"
    return config


def get_api_url(config: Dict[str, Any], path: str) -> str:
    """Full URL for *path*: ``api/...`` paths go to the backend root."""
    return build_api_url(config['api_url'], config['backend_url'], path)


def get_image_url(config: Dict[str, Any], filename: Optional[str]) -> str:
    """Public URL of an uploaded image; absolute URLs pass through."""
    if not filename:
        return ''
    if filename.startswith('http'):
        return filename
    return f"{config['backend_url'].rstrip('/')}{config['image_serve_endpoint']}/{filename}"


def status_label(status: Optional[str]) -> str:
    return STATUS_LABELS.get(status or '', status or '')


# ---------------------------------------------------------------------------
# Object graph
# ---------------------------------------------------------------------------

class AlumniPortal:
    """Wires the HTTP client, resource APIs, wilayah client and services.

    Args:
        config:       Output of :func:`load_config`.
        session_repo: Where the token/user live; defaults to the file named
                      by ``config['session_file']``.
    """

    def __init__(self, config: Dict[str, Any],
                 session_repo: Optional[SessionRepository] = None) -> None:
        self.config = config
        self.session = session_repo if session_repo is not None \
            else SessionRepository(config.get('session_file'))
        self.client = ApiClient(config['api_url'], config['backend_url'],
                                session_store=self.session,
                                timeout=config['request_timeout'])
        self.api = AlumniAPI(self.client)
        self.wilayah = WilayahClient(config['wilayah_api_url'],
                                     timeout=config['request_timeout'],
                                     cache=WilayahCache())
        self.auth = AuthService(self.client, self.session,
                                login_endpoint=config['auth_login_endpoint'])
        self.birthday = BirthdayService(self.api.birthday, self.api.biografi)
        self.birthday_settings = BirthdaySettingsService(self.api.birthday_settings)
        self.biografi_profile = BiografiProfileService(self.api.biografi,
                                                       self.api.biografi_views,
                                                       self.api.wilayah)
        self.alumni_search = AlumniSearchService(self.api.biografi)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _print_toast(result: Dict[str, Any]) -> None:
    colour = {'success': Fore.GREEN, 'warning': Fore.YELLOW,
              'error': Fore.RED}.get(result.get('type'), Fore.CYAN)
    print(f"{colour}{result.get('message', '')}")
    if result.get('description'):
        print(f"{Fore.WHITE}  {result['description']}")


def _print_notifications(title: str, items: List[Dict[str, Any]], label) -> None:
    print(f"\n{Fore.GREEN}{'=' * 60}")
    print(f"{Fore.CYAN}{Style.BRIGHT}{title} ({len(items)})")
    print(f"{Fore.GREEN}{'=' * 60}")
    if not items:
        print(f"{Fore.YELLOW}Tidak ada data")
        return
    for item in items:
        name = item.get('namaLengkap') or '-'
        when = label(item)
        status = item.get('statusDisplayName') or status_label(item.get('status'))
        print(f"{Fore.WHITE}{name:<32} {Fore.YELLOW}{when:<14} {Fore.CYAN}{status}")


def _print_statistics(stats: Dict[str, Any]) -> None:
    print(f"\n{Fore.CYAN}{Style.BRIGHT}Statistik Ulang Tahun {stats.get('year', '')}")
    for key, caption in (('totalBirthdays', 'Total'), ('sent', 'Terkirim'),
                         ('pending', 'Menunggu'), ('failed', 'Gagal'),
                         ('excluded', 'Dikecualikan')):
        print(f"{Fore.YELLOW}{caption:<14}{Fore.WHITE}{stats.get(key, 0)}")


def _ensure_login(portal: AlumniPortal) -> bool:
    if portal.auth.is_authenticated():
        return True
    username = os.getenv('ALUMNI_USERNAME')
    password = os.getenv('ALUMNI_PASSWORD')
    if not username or not password:
        print(f"{Fore.RED}Error: not logged in.")
        print(f"{Fore.YELLOW}Set ALUMNI_USERNAME and ALUMNI_PASSWORD to sign in.")
        return False
    try:
        user = portal.auth.login(username, password)
    except (ApiError, ValidationError) as e:
        print(f"{Fore.RED}Login failed: {e}")
        return False
    print(f"{Fore.GREEN}Logged in as {user.get('fullName') or username}")
    return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Alumni Portal - birthday notification admin',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 alumni.py --today              # Birthdays today
  python3 alumni.py --upcoming 7         # Birthdays in the next 7 days
  python3 alumni.py --past 30            # Notifications of the last 30 days
  python3 alumni.py --send-today         # Send today's pending notifications
  python3 alumni.py --generate 2025      # Generate notifications for a year
  python3 alumni.py --stats              # Statistics for the current year
        """
    )
    parser.add_argument(
        '--config', '-c',
        default='config.json',
        help='Path to config file (default: config.json)'
    )
    parser.add_argument(
        '--log-level',
        default='WARNING',
        help='Log level (DEBUG, INFO, WARNING, ERROR)'
    )
    parser.add_argument(
        '--upcoming',
        type=int,
        nargs='?',
        const=0,
        metavar='DAYS',
        help='List birthdays in the next DAYS days (default: birthday_upcoming_days)'
    )
    parser.add_argument(
        '--past',
        type=int,
        metavar='DAYS',
        help='List notifications of the last DAYS days'
    )
    parser.add_argument(
        '--today',
        action='store_true',
        help="List today's birthdays"
    )
    parser.add_argument(
        '--send-today',
        action='store_true',
        help="Send today's birthday notifications"
    )
    parser.add_argument(
        '--generate',
        type=int,
        metavar='YEAR',
        help='Generate notifications for YEAR'
    )
    parser.add_argument(
        '--stats',
        type=int,
        nargs='?',
        const=0,
        metavar='YEAR',
        help='Show notification statistics (default: current year)'
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    if not any([args.upcoming is not None, args.past is not None, args.today,
                args.send_today, args.generate is not None, args.stats is not None]):
        parser.print_help()
        return 0

    portal = AlumniPortal(load_config(args.config))
    if not _ensure_login(portal):
        return 1

    today = datetime.date.today()
    birthday = portal.birthday
    try:
        if args.today:
            _print_notifications('Ulang Tahun Hari Ini', birthday.today_birthdays(today),
                                 lambda n: birthday_countdown_label(n.get('tanggalLahir'), today))
        if args.upcoming is not None:
            days = args.upcoming or portal.config['birthday_upcoming_days']
            _print_notifications(f'Ulang Tahun {days} Hari Mendatang',
                                 birthday.load_upcoming(days),
                                 lambda n: birthday_countdown_label(n.get('tanggalLahir'), today))
        if args.past is not None:
            _print_notifications(f'Notifikasi {args.past} Hari Terakhir',
                                 birthday.load_past(args.past),
                                 lambda n: past_card_label(n.get('notificationDate'), today))
        if args.generate is not None:
            _print_toast(birthday.generate(args.generate))
        if args.send_today:
            _print_toast(birthday.send_today())
        if args.stats is not None:
            year = args.stats or today.year
            stats = portal.api.birthday.get_statistics(year) or {}
            stats.setdefault('year', year)
            _print_statistics(stats)
    except ApiError as e:
        print(f"{Fore.RED}Error: {e.message}")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
