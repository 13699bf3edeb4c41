"""
Alumni Portal application package.

Layered the same way for every page:

  app/repositories/  : the persisted login session (local I/O).
  app/services/      : page logic (wizards, filters, date rules, toasts).

``alumni.AlumniPortal`` builds the repositories and services once and the
Flask routes in ``alumni_web.py`` call them; services never touch HTTP
directly, only the resource wrappers in ``alumni_api.py``.
"""
