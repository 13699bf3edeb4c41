"""Page services for the alumni portal, importable from one place."""
from .base import BaseService, ValidationError, toast
from .auth_service import AuthService, is_admin_user
from .birthday_service import BirthdayService
from .birthday_settings_service import BirthdaySettingsService
from .jenis_laporan_wizard import JenisLaporanWizard
from .biografi_profile_service import BiografiProfileService
from .pelaksanaan_service import PelaksanaanService
from .alumni_search_service import AlumniSearchService, Debouncer

__all__ = [
    'BaseService',
    'ValidationError',
    'toast',
    'AuthService',
    'is_admin_user',
    'BirthdayService',
    'BirthdaySettingsService',
    'JenisLaporanWizard',
    'BiografiProfileService',
    'PelaksanaanService',
    'AlumniSearchService',
    'Debouncer',
]
