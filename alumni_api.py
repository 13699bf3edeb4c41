"""
alumni_api.py
=============
Resource wrappers around :class:`api_client.ApiClient`, one class per
backend area and one method per REST endpoint:

* **UserAPI**                 – ``/users``
* **BiografiAPI**             – ``/biografi`` (profiles, search, filter options)
* **BiografiViewAPI**         – ``/api/biografi-views`` (view tracking)
* **BirthdayAPI**             – ``/admin/birthday`` (notification admin)
* **BirthdaySettingsAPI**     – ``/birthday-settings``
* **InvitationAPI**           – ``/invitations``
* **PublicInvitationLinkAPI** – ``/public-invitation-links``
* **UserApprovalAPI**         – ``/user-approvals``
* **JenisLaporanAPI**         – ``/jenis-laporan``
* **TahapanLaporanAPI**       – ``/tahapan-laporan``
* **TempFileAPI**             – ``/api/temp-files`` (wizard scratch storage)
* **PelaksanaanAPI**          – ``/api/pelaksanaan``
* **WilayahAPI**              – ``/wilayah`` (region code → name lookups)

All methods return the decoded JSON body and raise
:class:`api_client.ApiError` on failure.  Query parameters whose value is
``None`` or ``''`` are never sent.

Usage
-----
::

    from alumni_api import AlumniAPI

    api = AlumniAPI(client)
    page = api.biografi.get_all(page=0, size=10)
    upcoming = api.birthday.get_upcoming(days=30)
"""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Dict, List, Optional

from api_client import ApiClient, ApiError, clean_params

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
BIOGRAFI_STATUSES = ("AKTIF", "TIDAK_AKTIF", "DRAFT")
BIOGRAFI_FILTER_FIELDS = (
    "provinsi", "kota", "kecamatan", "kelurahan", "jurusan",
    "pekerjaan", "spesialisasi", "alumni-tahun",
)
LOCATION_LEVELS = ("provinsi", "kota", "kecamatan", "kelurahan")
APPROVAL_BUCKETS = ("pending", "approved", "rejected", "all")

# Fields re-sent when only the status of a biografi changes.
_MINIMAL_BIOGRAFI_FIELDS = (
    "namaLengkap", "nim", "alumniTahun", "email", "nomorTelepon",
    "tanggalLahir", "tempatLahir", "jenisKelamin", "agama", "programStudi",
    "jurusan", "tanggalLulus", "ipk", "fotoProfil",
)


class _Resource:
    """Shared plumbing for the resource wrappers."""

    prefix = ""

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    def _call(self, path: str = "", method: str = "GET", **kwargs: Any) -> Any:
        return self._client.request(f"{self.prefix}{path}", method=method, **kwargs)


class UserAPI(_Resource):
    prefix = "/users"

    def get_all(self) -> List[Dict[str, Any]]:
        return self._call()

    def get_by_id(self, user_id: int) -> Dict[str, Any]:
        return self._call(f"/{user_id}")

    def get_by_username(self, username: str) -> Dict[str, Any]:
        return self._call(f"/username/{username}")

    def create(self, user: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(method="POST", json=user)

    def update(self, user_id: int, user: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(f"/{user_id}", method="PUT", json=user)

    def delete(self, user_id: int) -> None:
        return self._call(f"/{user_id}", method="DELETE")

    def exists(self, field: str, value: str) -> bool:
        """Check whether a *field* (``username``, ``email`` or ``phone``) is taken."""
        if field not in ("username", "email", "phone"):
            raise ValueError(f"Unsupported uniqueness field: {field}")
        return bool(self._call(f"/exists/{field}/{value}"))

    def reset_password(self, user_id: int, current_password: str,
                       new_password: str) -> Any:
        return self._call(
            f"/{user_id}/reset-password",
            method="PUT",
            json={"currentPassword": current_password, "newPassword": new_password},
        )


class BiografiAPI(_Resource):
    prefix = "/biografi"

    def get_all(self, page: int = 0, size: int = 10, sort_by: str = "createdAt",
                sort_direction: str = "desc") -> Dict[str, Any]:
        """Return one page of biografi records (a Spring ``Page`` dict)."""
        return self._call(params={
            "page": page, "size": size,
            "sortBy": sort_by, "sortDirection": sort_direction,
        })

    def search(self, filter_request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("/search", method="POST", json=clean_params(filter_request))

    def get_by_id(self, biografi_id: int) -> Dict[str, Any]:
        return self._call(f"/{biografi_id}")

    def get_for_edit(self, biografi_id: int) -> Dict[str, Any]:
        return self._call(f"/{biografi_id}/edit")

    def get_by_nim(self, nim: str) -> Dict[str, Any]:
        return self._call(f"/nim/{nim}")

    def get_my_biografi(self) -> Dict[str, Any]:
        return self._call("/my-biografi")

    def create(self, biografi: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(method="POST", json=biografi)

    def update(self, biografi_id: int, biografi: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(f"/{biografi_id}", method="PUT", json=biografi)

    def update_status(self, biografi_id: int, status: str) -> Dict[str, Any]:
        """Change only the status by re-sending the record's core fields.

        Raises:
            ValueError: *status* is not one of :data:`BIOGRAFI_STATUSES`.
        """
        if status not in BIOGRAFI_STATUSES:
            raise ValueError(f"Unknown biografi status: {status}")
        current = self.get_by_id(biografi_id) or {}
        request = {field: current.get(field) for field in _MINIMAL_BIOGRAFI_FIELDS}
        request["status"] = status
        return self.update(biografi_id, request)

    def delete(self, biografi_id: int) -> None:
        return self._call(f"/{biografi_id}", method="DELETE")

    def hard_delete(self, biografi_id: int) -> None:
        return self._call(f"/{biografi_id}/permanent", method="DELETE")

    def search_by_name(self, nama: str, page: int = 0, size: int = 10) -> Dict[str, Any]:
        return self._call("/search/name", params={"nama": nama, "page": page, "size": size})

    def get_by_author(self, nama: str) -> List[Dict[str, Any]]:
        return self._call(f"/author/{nama}")

    def get_by_status(self, status: str, page: int = 0, size: int = 10) -> Dict[str, Any]:
        return self._call(f"/status/{status}", params={"page": page, "size": size})

    def get_filter_options(self, field: str) -> List[Any]:
        """Return the distinct values for one filter dropdown."""
        if field not in BIOGRAFI_FILTER_FIELDS:
            raise ValueError(f"Unknown filter field: {field}")
        return self._call(f"/filters/{field}") or []

    def get_location_mappings(self, level: str) -> Dict[str, str]:
        """Return ``{name: code}`` for a location *level*."""
        if level not in LOCATION_LEVELS:
            raise ValueError(f"Unknown location level: {level}")
        return self._call(f"/filters/location-mappings/{level}") or {}


class BiografiViewAPI(_Resource):
    prefix = "/api/biografi-views"

    def track(self, biografi_id: int, user_info: Optional[Dict[str, Any]] = None) -> Any:
        return self._call(f"/track/{biografi_id}", method="POST", json=user_info or {})

    def get_stats(self, biografi_id: int) -> Dict[str, Any]:
        return self._call(f"/{biografi_id}/stats")

    def get_history(self, biografi_id: int, page: int = 0, size: int = 20) -> Dict[str, Any]:
        return self._call(f"/{biografi_id}/history", params={"page": page, "size": size})

    def get_top_viewed(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self._call("/top-viewed", params={"limit": limit})

    def get_recent_activity(self, page: int = 0, size: int = 20) -> Dict[str, Any]:
        return self._call("/recent-activity", params={"page": page, "size": size})

    def get_my_history(self, page: int = 0, size: int = 20) -> Dict[str, Any]:
        return self._call("/my-history", params={"page": page, "size": size})


class BirthdayAPI(_Resource):
    prefix = "/admin/birthday"

    def get_notifications(self, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._call("/notifications", params=clean_params(params))

    def get_upcoming(self, days: int = 30) -> List[Dict[str, Any]]:
        return self._call("/upcoming", params={"days": days}) or []

    def get_past(self, days: int = 30) -> List[Dict[str, Any]]:
        return self._call("/past", params={"days": days}) or []

    def get_statistics(self, year: Optional[int] = None) -> Dict[str, Any]:
        return self._call("/statistics", params={"year": year})

    def get_settings(self) -> Dict[str, Any]:
        return self._call("/settings")

    def generate(self, year: int) -> Any:
        return self._call(f"/generate/{year}", method="POST")

    def resend(self, notification_id: int) -> Any:
        return self._call(f"/resend/{notification_id}", method="POST")

    def toggle_exclusion(self, notification_id: int, exclude: bool) -> Any:
        return self._call(f"/exclude/{notification_id}", method="PUT",
                          json={"exclude": exclude})

    def toggle_biografi_exclusion(self, biografi_id: int, exclude: bool) -> Any:
        return self._call(f"/exclude-biografi/{biografi_id}", method="PUT",
                          json={"exclude": exclude})

    def reset_to_pending(self, biografi_id: int) -> Any:
        return self._call(f"/reset-biografi-to-pending/{biografi_id}", method="PUT")

    def send_test(self, biografi_id: int) -> Any:
        return self._call(f"/test/{biografi_id}", method="POST")

    def send_to_biografi(self, biografi_id: int) -> Any:
        return self._call(f"/send-biografi/{biografi_id}", method="POST")

    def send_today(self) -> Any:
        return self._call("/send-today", method="POST")


class BirthdaySettingsAPI(_Resource):
    prefix = "/birthday-settings"

    def get(self) -> Dict[str, Any]:
        return self._call()

    def update(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(method="PUT", json=settings)

    def upload_image(self, filename: str, stream: BinaryIO,
                     content_type: str = "application/octet-stream") -> str:
        """Upload the attachment image and return the stored ``imageUrl``."""
        result = self._call("/upload-image", method="POST",
                            files={"image": (filename, stream, content_type)})
        return (result or {}).get("imageUrl", "")

    def reset_defaults(self) -> Dict[str, Any]:
        return self._call("/reset-defaults", method="POST")

    def send_test_notification(self, phone_number: str) -> Dict[str, Any]:
        return self._call("/test-notification", method="POST",
                          json={"phoneNumber": phone_number})


class InvitationAPI(_Resource):
    prefix = "/invitations"

    def send(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("/send", method="POST", json=request)

    def get_history(self) -> List[Dict[str, Any]]:
        return self._call("/history")

    def get_by_token(self, token: str) -> Dict[str, Any]:
        return self._call(f"/token/{token}")

    def resend(self, invitation_id: int) -> Dict[str, Any]:
        return self._call(f"/{invitation_id}/resend", method="POST")

    def cancel(self, invitation_id: int) -> Dict[str, Any]:
        return self._call(f"/{invitation_id}/cancel", method="POST")

    def get_statistics(self) -> Dict[str, Any]:
        return self._call("/statistics")

    def get_history_paginated(self, page: int = 0, size: int = 10,
                              filters: Optional[Dict[str, Any]] = None,
                              sort_by: str = "createdAt",
                              sort_direction: str = "desc") -> Dict[str, Any]:
        filters = filters or {}
        return self._call("/history/paginated", params={
            "page": page, "size": size,
            "sortBy": sort_by, "sortDirection": sort_direction,
            "status": filters.get("status"),
            "nama": filters.get("nama"),
            "phone": filters.get("phone"),
        })

    def register(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("/register", method="POST", json=request)


class PublicInvitationLinkAPI(_Resource):
    prefix = "/public-invitation-links"

    def generate(self, description: Optional[str] = None,
                 expires_at: Optional[str] = None,
                 max_uses: Optional[int] = None) -> Dict[str, Any]:
        return self._call("/generate", method="POST", json={
            "description": description, "expiresAt": expires_at, "maxUses": max_uses,
        })

    def get_by_token(self, token: str) -> Dict[str, Any]:
        return self._call(f"/token/{token}")

    def validate(self, token: str) -> Dict[str, Any]:
        return self._call(f"/validate/{token}")

    def get_all(self) -> List[Dict[str, Any]]:
        return self._call()

    def get_active(self) -> List[Dict[str, Any]]:
        return self._call("/active")

    def deactivate(self, link_id: int) -> Dict[str, Any]:
        return self._call(f"/{link_id}/deactivate", method="POST")

    def activate(self, link_id: int) -> Dict[str, Any]:
        return self._call(f"/{link_id}/activate", method="POST")

    def get_statistics(self) -> Dict[str, Any]:
        return self._call("/statistics")


class UserApprovalAPI(_Resource):
    prefix = "/user-approvals"

    def get_pending(self) -> List[Dict[str, Any]]:
        return self._call("/pending")

    def get_paginated(self, bucket: str = "pending",
                      params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if bucket not in APPROVAL_BUCKETS:
            raise ValueError(f"Unknown approval bucket: {bucket}")
        return self._call(f"/{bucket}/paginated", params=params)

    def approve(self, user_id: int) -> Dict[str, Any]:
        return self._call(f"/{user_id}/approve", method="POST")

    def reject(self, user_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._call(f"/{user_id}/reject", method="POST", json={"reason": reason})

    def get_statistics(self) -> Dict[str, Any]:
        return self._call("/statistics")

    def get_pending_count(self) -> int:
        return int((self._call("/pending/count") or {}).get("count", 0))


class JenisLaporanAPI(_Resource):
    prefix = "/jenis-laporan"

    def get_all(self, page: int = 0, size: int = 10, sort_by: str = "createdAt",
                sort_direction: str = "desc", nama: Optional[str] = None,
                status: Optional[str] = None) -> Dict[str, Any]:
        return self._call(params={
            "page": page, "size": size,
            "sortBy": sort_by, "sortDirection": sort_direction,
            "nama": nama, "status": status,
        })

    def search(self, filter_request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call("/search", method="POST", json=clean_params(filter_request))

    def get_active(self) -> List[Dict[str, Any]]:
        return self._call("/active")

    def get_by_id(self, jenis_id: int) -> Dict[str, Any]:
        return self._call(f"/{jenis_id}")

    def get_with_tahapan(self, jenis_id: int) -> Dict[str, Any]:
        return self._call(f"/{jenis_id}/with-tahapan")

    def create(self, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(method="POST", json=request)

    def update(self, jenis_id: int, request: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(f"/{jenis_id}", method="PUT", json=request)

    def delete(self, jenis_id: int) -> None:
        return self._call(f"/{jenis_id}", method="DELETE")

    def hard_delete(self, jenis_id: int) -> None:
        return self._call(f"/{jenis_id}/permanent", method="DELETE")

    def get_tahapan(self, jenis_id: int) -> List[Dict[str, Any]]:
        return self._call(f"/{jenis_id}/tahapan")

    def get_active_tahapan(self, jenis_id: int) -> List[Dict[str, Any]]:
        return self._call(f"/{jenis_id}/tahapan/active")

    def create_tahapan(self, jenis_id: int, tahapan: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(f"/{jenis_id}/tahapan", method="POST", json=tahapan)

    def get_next_urutan(self, jenis_id: int) -> int:
        return int((self._call(f"/{jenis_id}/tahapan/next-urutan") or {}).get("nextUrutan", 1))

    def get_stats(self) -> Dict[str, Any]:
        return self._call("/stats")

    def toggle_status(self, jenis_id: int) -> Dict[str, Any]:
        return self._call(f"/{jenis_id}/toggle-status", method="PATCH")


class TahapanLaporanAPI(_Resource):
    prefix = "/tahapan-laporan"

    def get_by_id(self, tahapan_id: int) -> Dict[str, Any]:
        return self._call(f"/{tahapan_id}")

    def get_by_jenis_laporan(self, jenis_id: int) -> List[Dict[str, Any]]:
        return self._call(f"/jenis-laporan/{jenis_id}")

    def get_active_by_jenis_laporan(self, jenis_id: int) -> List[Dict[str, Any]]:
        return self._call(f"/jenis-laporan/{jenis_id}/active")

    def create(self, tahapan: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(method="POST", json=tahapan)

    def update(self, tahapan_id: int, tahapan: Dict[str, Any]) -> Dict[str, Any]:
        return self._call(f"/{tahapan_id}", method="PUT", json=tahapan)

    def delete(self, tahapan_id: int) -> None:
        return self._call(f"/{tahapan_id}", method="DELETE")

    def hard_delete(self, tahapan_id: int) -> None:
        return self._call(f"/{tahapan_id}/permanent", method="DELETE")


class TempFileAPI(_Resource):
    """Scratch storage used while a wizard is still being filled in."""

    prefix = "/api/temp-files"

    def upload(self, filename: str, stream: BinaryIO,
               content_type: str = "application/octet-stream") -> str:
        """Upload a file and return the server-side temp file name.

        Raises:
            ApiError: Upload was rejected; the backend ``message`` is kept.
        """
        try:
            result = self._call("/upload", method="POST",
                                files={"file": (filename, stream, content_type)})
        except ApiError as exc:
            raise ApiError(exc.payload.get("message") or "Gagal mengupload file",
                           status_code=exc.status_code, payload=exc.payload) from exc
        file_name = ((result or {}).get("data") or {}).get("fileName")
        if not file_name:
            raise ApiError((result or {}).get("message") or "Gagal mengupload file")
        return file_name

    def preview_url(self, file_name: str) -> str:
        return self._client.url_for(f"{self.prefix}/preview/{file_name}")

    def download_url(self, file_name: str) -> str:
        return self._client.url_for(f"{self.prefix}/download/{file_name}")

    def info(self, file_name: str) -> Dict[str, Any]:
        return self._call(f"/info/{file_name}")

    def delete(self, file_name: str) -> Any:
        return self._call(f"/{file_name}", method="DELETE")

    def bulk_delete(self, file_names: List[str]) -> Any:
        return self._call("/bulk", method="DELETE", json={"fileNames": list(file_names)})

    def cleanup(self, hours_old: int = 24) -> Any:
        return self._call("/cleanup", method="POST", params={"hoursOld": hours_old})


class PelaksanaanAPI(_Resource):
    prefix = "/api/pelaksanaan"

    def get_by_id(self, pelaksanaan_id: int) -> Dict[str, Any]:
        return self._call(f"/{pelaksanaan_id}")

    def update_status(self, pelaksanaan_id: int, status: str,
                      catatan: Optional[str] = None) -> Dict[str, Any]:
        form = {"status": status}
        if catatan:
            form["catatan"] = catatan
        return self._call(f"/{pelaksanaan_id}/status", method="PUT", data=form)

    def get_dokumentasi(self, pelaksanaan_id: int) -> List[Dict[str, Any]]:
        return self._call(f"/{pelaksanaan_id}/dokumentasi") or []

    def add_dokumentasi(self, pelaksanaan_id: int, fields: Dict[str, Any],
                        foto: Optional[tuple] = None) -> Dict[str, Any]:
        files = {"foto": foto} if foto else None
        return self._call(f"/{pelaksanaan_id}/dokumentasi", method="POST",
                          data=clean_params(fields), files=files)

    def delete_dokumentasi(self, dokumentasi_id: int) -> Any:
        return self._call(f"/dokumentasi/{dokumentasi_id}", method="DELETE")

    def get_participants(self, pelaksanaan_id: int) -> List[Dict[str, Any]]:
        return self._call(f"/{pelaksanaan_id}/participants") or []

    def save_participants(self, pelaksanaan_id: int,
                          participants: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return self._call(f"/{pelaksanaan_id}/participants", method="POST", json=participants)

    def update_attendance(self, pelaksanaan_id: int, biografi_id: int, hadir: bool,
                          catatan: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._call(f"/{pelaksanaan_id}/participants/{biografi_id}", method="PUT",
                          params={"hadir": str(hadir).lower(), "catatan": catatan})

    def get_summary(self) -> Dict[str, Any]:
        return self._call("/summary")


class WilayahAPI(_Resource):
    prefix = "/wilayah"

    def get_names(self, code_map: Dict[str, str]) -> Dict[str, str]:
        """Resolve ``{code: level}`` to ``{code: name}`` in one round trip."""
        return self._call("/names", method="POST", json=code_map) or {}

    def get_name(self, code: str) -> Dict[str, Any]:
        return self._call(f"/name/{code}")

    def convert_biografi_location(self, biografi: Dict[str, Any]) -> Dict[str, str]:
        """Return ``provinsiNama``/``kotaNama``/... for a biografi's region codes.

        Any failure is logged and yields ``{}`` so the profile still renders.
        """
        code_map = {biografi[level]: level for level in LOCATION_LEVELS if biografi.get(level)}
        if not code_map:
            return {}
        try:
            names = self.get_names(code_map)
        except ApiError as exc:
            logger.warning("Could not convert location codes: %s", exc)
            return {}
        result: Dict[str, str] = {}
        for level in LOCATION_LEVELS:
            code = biografi.get(level)
            if code:
                result[f"{level}Nama"] = names.get(code, code)
        return result


class AlumniAPI:
    """Bundle of every resource wrapper sharing one :class:`ApiClient`."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client
        self.users = UserAPI(client)
        self.biografi = BiografiAPI(client)
        self.biografi_views = BiografiViewAPI(client)
        self.birthday = BirthdayAPI(client)
        self.birthday_settings = BirthdaySettingsAPI(client)
        self.invitations = InvitationAPI(client)
        self.public_links = PublicInvitationLinkAPI(client)
        self.user_approvals = UserApprovalAPI(client)
        self.jenis_laporan = JenisLaporanAPI(client)
        self.tahapan_laporan = TahapanLaporanAPI(client)
        self.temp_files = TempFileAPI(client)
        self.pelaksanaan = PelaksanaanAPI(client)
        self.wilayah = WilayahAPI(client)
