#!/usr/bin/env python3
"""
Alumni Portal Web - JSON endpoints for the admin pages.
Each page's state rules live in ``app/services``; the routes here only parse
requests, call a service and return its result (toasts as ``{"toast": ...}``).
"""
import argparse
import logging
import os
import threading
import time
import uuid
from functools import wraps
from typing import Any, Dict, Optional, Tuple

from flask import Flask, jsonify, request

import alumni
from api_client import ApiError, AuthExpiredError
from app.repositories import SessionRepository
from app.services import (
    JenisLaporanWizard, PelaksanaanService, ValidationError,
)
from app.services.biografi_profile_service import contact_phone, format_phone_for_whatsapp, whatsapp_url
from app.services.birthday_service import TABS as BIRTHDAY_TABS
from app.services.pelaksanaan_service import can_edit

# Initialize logging early so service logs are captured
log_level = os.getenv('ALUMNI_LOG_LEVEL', 'INFO')
alumni_logger = alumni.setup_logging(log_level)
web_logger = logging.getLogger('alumni.web')
web_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
try:
    os.makedirs('logs', exist_ok=True)
    fh = logging.FileHandler('logs/alumni_web.log')
    fh.setFormatter(logging.Formatter('[%(asctime)s] %(levelname)s %(name)s: %(message)s'))
    fh.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    web_logger.addHandler(fh)
except OSError:
    web_logger.warning('Could not create log file handler')

app = Flask(__name__)
app.secret_key = os.urandom(24)

# Service graph, built lazily on first request
portal: Optional[alumni.AlumniPortal] = None
portal_lock = threading.Lock()

# In-progress wizards keyed by wizard id / pelaksanaan id, shared by the
# process login. Drafts untouched for DRAFT_TTL_SECONDS are dropped.
DRAFT_TTL_SECONDS = int(os.getenv('ALUMNI_DRAFT_TTL', str(2 * 60 * 60)))
jenis_laporan_wizards: Dict[str, JenisLaporanWizard] = {}
jenis_laporan_seen: Dict[str, float] = {}
jenis_laporan_lock = threading.Lock()
pelaksanaan_editors: Dict[int, PelaksanaanService] = {}
pelaksanaan_seen: Dict[int, float] = {}
pelaksanaan_lock = threading.Lock()


def evict_stale(drafts: Dict[Any, Any], seen: Dict[Any, float], now: float) -> list:
    """Remove drafts idle longer than the TTL; caller holds the matching lock."""
    stale = [key for key, last in seen.items() if now - last > DRAFT_TTL_SECONDS]
    evicted = []
    for key in stale:
        seen.pop(key, None)
        draft = drafts.pop(key, None)
        if draft is not None:
            evicted.append(draft)
    if evicted:
        web_logger.info('Dropped %d idle draft(s)', len(evicted))
    return evicted


def _cancel_wizards(wizards) -> None:
    for wizard in wizards:
        wizard.cancel()


def init_portal(config: Optional[Dict[str, Any]] = None,
                session_repo: Optional[SessionRepository] = None) -> alumni.AlumniPortal:
    """(Re)build the service graph; the web process keeps its login in memory."""
    global portal
    with portal_lock:
        if config is None:
            config = alumni.load_config(os.getenv('ALUMNI_CONFIG', 'config.json'))
        portal = alumni.AlumniPortal(config, session_repo or SessionRepository(None))
        web_logger.info('Portal initialised for %s', config['api_url'])
        return portal


def get_portal() -> alumni.AlumniPortal:
    if portal is None:
        return init_portal()
    return portal


def require_login(f):
    """Decorator to require user to be logged in"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_portal().auth.is_authenticated():
            return jsonify({'error': 'Not logged in'}), 401
        return f(*args, **kwargs)
    return decorated_function


def require_admin(f):
    """Decorator to require admin privileges"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth = get_portal().auth
        if not auth.is_authenticated():
            return jsonify({'error': 'Not logged in'}), 401
        if not auth.is_admin():
            return jsonify({'error': 'Admin privileges required'}), 403
        return f(*args, **kwargs)
    return decorated_function


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

@app.errorhandler(ValidationError)
def handle_validation_error(exc):
    return jsonify({'error': str(exc)}), 400


@app.errorhandler(AuthExpiredError)
def handle_auth_expired(exc):
    return jsonify({'error': exc.message}), 401


@app.errorhandler(ApiError)
def handle_api_error(exc):
    status = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
    web_logger.error('Backend error (%s): %s', status, exc.message)
    return jsonify({'error': exc.message}), status


def _json_body() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _uploaded_file(field: str) -> Tuple[str, Any, str, int]:
    """``(filename, stream, content_type, size)`` of a multipart upload."""
    upload = request.files.get(field)
    if upload is None or not upload.filename:
        raise ValidationError('File harus dipilih')
    stream = upload.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return upload.filename, stream, upload.mimetype or 'application/octet-stream', size


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@app.route('/api/auth/login', methods=['POST'])
def api_auth_login():
    """Log in against the backend and keep the token for this process"""
    data = _json_body()
    username = (data.get('username') or '').strip()
    web_logger.info('Login endpoint called for username=%s', username)
    user = get_portal().auth.login(username, data.get('password') or '')
    return jsonify({'message': 'Login successful', 'user': user})


@app.route('/api/auth/logout', methods=['POST'])
def api_auth_logout():
    get_portal().auth.logout()
    with jenis_laporan_lock:
        abandoned = list(jenis_laporan_wizards.values())
        jenis_laporan_wizards.clear()
        jenis_laporan_seen.clear()
    with pelaksanaan_lock:
        pelaksanaan_editors.clear()
        pelaksanaan_seen.clear()
    _cancel_wizards(abandoned)
    return jsonify({'message': 'Logged out successfully'})


@app.route('/api/auth/me', methods=['GET'])
def api_auth_me():
    auth = get_portal().auth
    return jsonify({
        'authenticated': auth.is_authenticated(),
        'user': auth.current_user(),
        'isAdmin': auth.is_admin(),
    })


# ---------------------------------------------------------------------------
# Birthday admin
# ---------------------------------------------------------------------------

_BIRTHDAY_FILTER_ARGS = ('year', 'status', 'nama', 'startDate', 'endDate',
                         'isExcluded', 'page', 'size', 'sortBy', 'sortDirection', 'days')


@app.route('/api/birthday/dashboard', methods=['GET'])
@require_admin
def api_birthday_dashboard():
    return jsonify(get_portal().birthday.load_dashboard())


@app.route('/api/birthday/<tab>', methods=['GET'])
@require_admin
def api_birthday_tab(tab):
    if tab not in BIRTHDAY_TABS:
        return jsonify({'error': f'Unknown tab: {tab}'}), 404
    state: Dict[str, Any] = {}
    for key in _BIRTHDAY_FILTER_ARGS:
        value = request.args.get(key)
        if value not in (None, ''):
            state[key] = int(value) if key in ('year', 'page', 'size', 'days') and value.isdigit() \
                else value
    return jsonify(get_portal().birthday.load_tab(tab, **state))


@app.route('/api/birthday/actions/<action>', methods=['POST'])
@require_admin
def api_birthday_action(action):
    """Run one admin action; ``selected`` lists are resolved against fresh data"""
    service = get_portal().birthday
    data = _json_body()
    selected = data.get('selected') or []
    biografi_id = data.get('biografiId')

    if action == 'send-selected-today':
        result = service.send_selected_today(selected, service.load_upcoming())
    elif action == 'send-today-selected':
        result = service.send_today_selected(selected, service.today_birthdays())
    elif action == 'bulk-exclude':
        tab = data.get('tab', 'upcoming')
        if tab not in BIRTHDAY_TABS:
            raise ValidationError(f'Tab tidak dikenal: {tab}')
        result = service.bulk_exclude(selected, service.load_tab(tab)['items'])
    elif action == 'bulk-resend':
        result = service.bulk_resend(selected, service.load_past())
    elif action == 'generate':
        if not data.get('year'):
            raise ValidationError('Tahun harus diisi')
        result = service.generate(int(data['year']))
    elif action == 'send-today':
        result = service.send_today()
    elif action in ('resend', 'toggle-exclude', 'send-test', 'reset-to-pending'):
        if biografi_id is None:
            raise ValidationError('biografiId harus diisi')
        if action == 'resend':
            result = service.resend(biografi_id)
        elif action == 'toggle-exclude':
            result = service.toggle_exclude(biografi_id, bool(data.get('exclude')))
        elif action == 'send-test':
            result = service.send_test(biografi_id)
        else:
            result = service.reset_to_pending(biografi_id)
    else:
        return jsonify({'error': f'Unknown action: {action}'}), 404
    return jsonify({'toast': result})


@app.route('/api/birthday/settings', methods=['GET'])
@require_admin
def api_birthday_settings_get():
    return jsonify(get_portal().birthday_settings.load())


@app.route('/api/birthday/settings', methods=['PUT'])
@require_admin
def api_birthday_settings_put():
    """Save settings; accepts JSON, or multipart with ``settings`` JSON + ``image``"""
    image = None
    if request.files.get('image'):
        filename, stream, content_type, size = _uploaded_file('image')
        if size > get_portal().config['max_image_size']:
            raise ValidationError('Ukuran gambar maksimal 5MB')
        image = (filename, stream, content_type)
        settings = request.form.to_dict()
        if 'enabled' in settings:
            settings['enabled'] = settings['enabled'].lower() in ('1', 'true', 'on')
    else:
        settings = _json_body()
    return jsonify({'toast': get_portal().birthday_settings.save(settings, image)})


@app.route('/api/birthday/settings/test', methods=['POST'])
@require_admin
def api_birthday_settings_test():
    phone = _json_body().get('phoneNumber', '')
    return jsonify({'toast': get_portal().birthday_settings.send_test(phone)})


@app.route('/api/birthday/settings/reset', methods=['POST'])
@require_admin
def api_birthday_settings_reset():
    return jsonify({'toast': get_portal().birthday_settings.reset_defaults()})


# ---------------------------------------------------------------------------
# Jenis laporan wizard
# ---------------------------------------------------------------------------

def _get_wizard(wizard_id: str) -> Optional[JenisLaporanWizard]:
    now = time.monotonic()
    with jenis_laporan_lock:
        stale = evict_stale(jenis_laporan_wizards, jenis_laporan_seen, now)
        wizard = jenis_laporan_wizards.get(wizard_id)
        if wizard is not None:
            jenis_laporan_seen[wizard_id] = now
    _cancel_wizards(stale)
    return wizard


def with_wizard(f):
    """Decorator resolving ``wizard_id`` to the in-progress wizard (404 if unknown)"""
    @wraps(f)
    def decorated_function(wizard_id, *args, **kwargs):
        wizard = _get_wizard(wizard_id)
        if wizard is None:
            return jsonify({'error': 'Wizard not found'}), 404
        return f(wizard, *args, **kwargs)
    return decorated_function


@app.route('/api/jenis-laporan/wizard', methods=['POST'])
@require_admin
def api_wizard_create():
    api = get_portal().api
    wizard = JenisLaporanWizard(api.jenis_laporan, api.temp_files)
    wizard_id = uuid.uuid4().hex
    now = time.monotonic()
    with jenis_laporan_lock:
        stale = evict_stale(jenis_laporan_wizards, jenis_laporan_seen, now)
        jenis_laporan_wizards[wizard_id] = wizard
        jenis_laporan_seen[wizard_id] = now
    _cancel_wizards(stale)
    return jsonify({'wizardId': wizard_id, 'state': wizard.snapshot()}), 201


@app.route('/api/jenis-laporan/wizard/<wizard_id>', methods=['GET'])
@require_admin
@with_wizard
def api_wizard_state(wizard):
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>', methods=['DELETE'])
@require_admin
def api_wizard_cancel(wizard_id):
    with jenis_laporan_lock:
        wizard = jenis_laporan_wizards.pop(wizard_id, None)
        jenis_laporan_seen.pop(wizard_id, None)
    if wizard is None:
        return jsonify({'error': 'Wizard not found'}), 404
    wizard.cancel()
    return jsonify({'message': 'Wizard cancelled'})


@app.route('/api/jenis-laporan/wizard/<wizard_id>/info', methods=['PUT'])
@require_admin
@with_wizard
def api_wizard_info(wizard):
    data = _json_body()
    wizard.set_basic_info(data.get('nama'), data.get('deskripsi'), data.get('status'))
    if data.get('layout') is not None:
        wizard.set_layout(int(data['layout']))
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/next', methods=['POST'])
@require_admin
@with_wizard
def api_wizard_next(wizard):
    if not wizard.next_step():
        return jsonify({'error': 'Lengkapi langkah ini terlebih dahulu',
                        'state': wizard.snapshot()}), 400
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/prev', methods=['POST'])
@require_admin
@with_wizard
def api_wizard_prev(wizard):
    wizard.prev_step()
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan', methods=['POST'])
@require_admin
@with_wizard
def api_wizard_add_tahapan(wizard):
    data = _json_body()
    wizard.add_tahapan(data.get('nama', ''), data.get('deskripsi', ''),
                       data.get('jenisFileIzin'))
    return jsonify(wizard.snapshot()), 201


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/sample', methods=['POST'])
@require_admin
@with_wizard
def api_wizard_sample_tahapan(wizard):
    wizard.add_sample_tahapan()
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/<int:index>', methods=['PUT'])
@require_admin
@with_wizard
def api_wizard_update_tahapan(wizard, index):
    wizard.update_tahapan(index, **_json_body())
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/<int:index>', methods=['DELETE'])
@require_admin
@with_wizard
def api_wizard_remove_tahapan(wizard, index):
    wizard.remove_tahapan(index)
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/<int:index>/move', methods=['POST'])
@require_admin
@with_wizard
def api_wizard_move_tahapan(wizard, index):
    data = _json_body()
    if data.get('position') is not None:
        moved = wizard.move_to_position(index, int(data['position']))
    else:
        moved = wizard.move_tahapan(index, data.get('direction', ''))
    return jsonify({'moved': moved, 'state': wizard.snapshot()})


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/<int:index>/file-types',
           methods=['POST'])
@require_admin
@with_wizard
def api_wizard_file_types(wizard, index):
    """Body: ``{"type": "pdf"}``, ``{"group": "Word"}``, ``{"all": true}`` or ``{"clear": true}``"""
    data = _json_body()
    if data.get('all'):
        wizard.select_all(index)
    elif data.get('clear'):
        wizard.clear_all(index)
    elif data.get('group'):
        wizard.toggle_file_type_group(index, data['group'])
    elif data.get('type'):
        wizard.toggle_file_type(index, data['type'])
    else:
        raise ValidationError('type, group, all atau clear harus diisi')
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/<int:index>/template',
           methods=['POST'])
@require_admin
@with_wizard
def api_wizard_upload_template(wizard, index):
    filename, stream, content_type, size = _uploaded_file('file')
    try:
        result = wizard.upload_template(index, filename, stream, size, content_type)
    except ApiError as exc:
        web_logger.error('Template upload failed: %s', exc)
        return jsonify({'toast': {'type': 'error', 'message': 'Upload gagal',
                                  'description': exc.message}}), 502
    return jsonify({'toast': result, 'template': wizard.template_info(index)})


@app.route('/api/jenis-laporan/wizard/<wizard_id>/tahapan/<int:index>/template',
           methods=['DELETE'])
@require_admin
@with_wizard
def api_wizard_remove_template(wizard, index):
    wizard.remove_template(index)
    return jsonify(wizard.snapshot())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/preview', methods=['GET'])
@require_admin
@with_wizard
def api_wizard_preview(wizard):
    return jsonify(wizard.preview())


@app.route('/api/jenis-laporan/wizard/<wizard_id>/submit', methods=['POST'])
@require_admin
def api_wizard_submit(wizard_id):
    wizard = _get_wizard(wizard_id)
    if wizard is None:
        return jsonify({'error': 'Wizard not found'}), 404
    result = wizard.submit()
    if result['type'] != 'success':
        return jsonify({'toast': result}), 502
    with jenis_laporan_lock:
        jenis_laporan_wizards.pop(wizard_id, None)
        jenis_laporan_seen.pop(wizard_id, None)
    return jsonify({'toast': result, 'jenisLaporan': result.get('data')}), 201


# ---------------------------------------------------------------------------
# Biografi detail
# ---------------------------------------------------------------------------

@app.route('/api/biografi/<int:biografi_id>', methods=['GET'])
def api_biografi_detail(biografi_id):
    """Profile page data; signed-in visitors are recorded as viewers"""
    p = get_portal()
    user = p.auth.current_user() if p.auth.is_authenticated() else None
    page = p.biografi_profile.load(biografi_id, user)
    tab = request.args.get('tab', page['activeTab'])
    page['activeTab'] = tab
    page['tabData'] = p.biografi_profile.tab_view(page['biografi'], tab)
    return jsonify(page)


@app.route('/api/biografi/<int:biografi_id>/views', methods=['GET'])
def api_biografi_views(biografi_id):
    service = get_portal().biografi_profile
    size = request.args.get('size', 20, type=int)
    return jsonify({
        'stats': service.view_stats(biografi_id),
        'history': service.view_history(biografi_id, size=size),
    })


@app.route('/api/biografi/<int:biografi_id>/whatsapp', methods=['GET'])
def api_biografi_whatsapp(biografi_id):
    biografi = get_portal().api.biografi.get_by_id(biografi_id) or {}
    phone = contact_phone(biografi)
    if not phone:
        return jsonify({'error': 'Nomor WhatsApp tidak tersedia'}), 404
    return jsonify({'phone': format_phone_for_whatsapp(phone), 'url': whatsapp_url(phone)})


# ---------------------------------------------------------------------------
# Pelaksanaan edit wizard
# ---------------------------------------------------------------------------

def with_editor(f):
    """Decorator resolving ``pelaksanaan_id`` to a loaded editor the user may edit"""
    @wraps(f)
    def decorated_function(pelaksanaan_id, *args, **kwargs):
        now = time.monotonic()
        with pelaksanaan_lock:
            evict_stale(pelaksanaan_editors, pelaksanaan_seen, now)
            editor = pelaksanaan_editors.get(pelaksanaan_id)
            if editor is not None:
                pelaksanaan_seen[pelaksanaan_id] = now
        if editor is None:
            return jsonify({'error': 'Pelaksanaan not loaded'}), 404
        user = get_portal().auth.current_user()
        if not can_edit(user, (editor.pelaksanaan or {}).get('usulan')):
            return jsonify({'error': 'Anda tidak memiliki akses untuk mengedit pelaksanaan ini'}), 403
        return f(editor, *args, **kwargs)
    return decorated_function


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit', methods=['GET'])
@require_login
def api_pelaksanaan_load(pelaksanaan_id):
    p = get_portal()
    editor = PelaksanaanService(p.api.pelaksanaan)
    try:
        editor.load(pelaksanaan_id)
    except ApiError as exc:
        web_logger.error('Error fetching pelaksanaan %s: %s', pelaksanaan_id, exc)
        return jsonify({'error': 'Gagal memuat data pelaksanaan'}), exc.status_code or 502
    now = time.monotonic()
    with pelaksanaan_lock:
        evict_stale(pelaksanaan_editors, pelaksanaan_seen, now)
        pelaksanaan_editors[pelaksanaan_id] = editor
        pelaksanaan_seen[pelaksanaan_id] = now
    state = editor.snapshot()
    state['canEdit'] = can_edit(p.auth.current_user(), editor.pelaksanaan.get('usulan'))
    return jsonify(state)


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/status', methods=['PUT'])
@require_login
@with_editor
def api_pelaksanaan_set_status(editor):
    data = _json_body()
    editor.set_status(data.get('status', editor.status), data.get('catatan'))
    if data.get('save'):
        return jsonify({'toast': editor.save_status(), 'state': editor.snapshot()})
    return jsonify(editor.snapshot())


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/step', methods=['POST'])
@require_login
@with_editor
def api_pelaksanaan_step(editor):
    data = _json_body()
    action = data.get('action')
    if action == 'next':
        editor.next_step()
    elif action == 'prev':
        editor.prev_step()
    elif action == 'goto':
        editor.go_to_step(int(data.get('step', -1)))
    else:
        raise ValidationError("action harus 'next', 'prev' atau 'goto'")
    return jsonify(editor.snapshot())


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/dokumentasi', methods=['POST'])
@require_login
@with_editor
def api_pelaksanaan_add_dokumentasi(editor):
    result = editor.add_dokumentasi(request.form.get('judul', ''),
                                    request.form.get('deskripsi', ''),
                                    _uploaded_file('foto'),
                                    get_portal().auth.current_user())
    return jsonify({'toast': result, 'dokumentasi': editor.dokumentasi})


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/dokumentasi/<int:dokumentasi_id>',
           methods=['DELETE'])
@require_login
@with_editor
def api_pelaksanaan_delete_dokumentasi(editor, dokumentasi_id):
    return jsonify({'toast': editor.delete_dokumentasi(dokumentasi_id),
                    'dokumentasi': editor.dokumentasi})


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/participants', methods=['POST'])
@require_login
@with_editor
def api_pelaksanaan_participants(editor):
    data = _json_body()
    action = data.get('action')
    if action == 'add':
        editor.add_participant(data.get('alumni') or {})
    elif action == 'remove':
        editor.remove_participant(data.get('biografiId'))
    elif action == 'toggle-attendance':
        editor.toggle_attendance(data.get('biografiId'))
    elif action == 'mark-all':
        editor.mark_all(bool(data.get('hadir', True)))
    elif action == 'select-all-visible':
        editor.select_all_visible(data.get('alumni') or [])
    elif action == 'toggle-selection':
        editor.toggle_selection(data.get('alumni') or {})
    else:
        raise ValidationError(f'Aksi tidak dikenal: {action}')
    return jsonify({'participants': editor.participants,
                    'attendance': editor.attendance_counts()})


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/options', methods=['GET'])
@require_login
def api_pelaksanaan_options(pelaksanaan_id):
    return jsonify(get_portal().alumni_search.load_options())


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/alumni', methods=['GET'])
@require_login
@with_editor
def api_pelaksanaan_alumni(editor):
    """Search alumni to add; already-selected alumni are filtered out"""
    search = get_portal().alumni_search
    filters = {key: request.args.get(key) for key in
               ('nama', 'nomorTelepon', 'alumniTahun', 'spesialisasi', 'pekerjaan')}
    locations = {level: request.args.get(level) for level in
                 ('provinsi', 'kota', 'kecamatan', 'kelurahan')}
    result = search.search(filters, locations,
                           page=request.args.get('page', 0, type=int),
                           size=request.args.get('size', 10, type=int))
    selected = {p['biografiId'] for p in editor.participants}
    result['content'] = search.filter_local(result['content'], request.args.get('q', ''),
                                            locations, selected)
    return jsonify(result)


@app.route('/api/pelaksanaan/<int:pelaksanaan_id>/edit/save', methods=['POST'])
@require_login
@with_editor
def api_pelaksanaan_save(editor):
    result = editor.save_all()
    status = 200 if result['type'] != 'error' else 502
    return jsonify({'toast': result}), status


# ---------------------------------------------------------------------------
# Wilayah
# ---------------------------------------------------------------------------

@app.route('/api/wilayah/provinces', methods=['GET'])
def api_wilayah_provinces():
    wilayah = get_portal().wilayah
    return jsonify({'data': wilayah.to_options(wilayah.get_provinces())})


@app.route('/api/wilayah/regencies/<code>', methods=['GET'])
def api_wilayah_regencies(code):
    wilayah = get_portal().wilayah
    return jsonify({'data': wilayah.to_options(wilayah.get_regencies(code))})


@app.route('/api/wilayah/districts/<code>', methods=['GET'])
def api_wilayah_districts(code):
    wilayah = get_portal().wilayah
    return jsonify({'data': wilayah.to_options(wilayah.get_districts(code))})


@app.route('/api/wilayah/villages/<code>', methods=['GET'])
def api_wilayah_villages(code):
    villages = get_portal().wilayah.get_villages(code)
    return jsonify({'data': [{'value': v['code'], 'label': v['name'],
                              'postalCode': v.get('postal_code')} for v in villages]})


@app.route('/api/wilayah/name/<code>', methods=['GET'])
def api_wilayah_name(code):
    return jsonify({'kode': code, 'nama': get_portal().wilayah.get_name(code)})


@app.route('/api/wilayah/names', methods=['POST'])
def api_wilayah_names():
    return jsonify(get_portal().wilayah.get_names(_json_body()))


@app.route('/api/wilayah/cache', methods=['DELETE'])
@require_admin
def api_wilayah_cache_clear():
    get_portal().wilayah.cache.clear()
    return jsonify({'message': 'Cache cleared'})


def main():
    """Main entry point for the web server"""
    parser = argparse.ArgumentParser(description='Alumni Portal Web')
    parser.add_argument('--config', default='config.json', help='Path to config file')
    parser.add_argument('--host', default='127.0.0.1', help='Bind address')
    parser.add_argument('--port', type=int, default=5000, help='Port to listen on')
    args = parser.parse_args()

    init_portal(alumni.load_config(args.config))

    print("\n" + "=" * 60)
    print("Alumni Portal Web is starting...")
    print("=" * 60)
    print(f"\nListening on http://{args.host}:{args.port}")
    print("\nPress Ctrl+C to stop the server")
    print("=" * 60 + "\n")

    try:
        app.run(host=args.host, port=args.port, debug=False)
    except KeyboardInterrupt:
        print("\nAlumni Portal Web stopped")


if __name__ == '__main__':
    main()
