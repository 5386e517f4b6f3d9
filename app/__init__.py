"""
PlayLog application package.

Layered architecture:

  database.py        — SQLAlchemy models and store helpers (pure I/O).
  app/services/      — business logic: validation, normalization, ordering,
                       aggregation, and error translation.
  app/errors.py      — the error kinds services raise.

``PlayLog`` (in ``playlog.py``) is the integration point: it creates the
service instances in ``__init__`` and exposes them as public attributes
(e.g. ``tracker.collection_service``).  Route handlers in ``playlog_web.py``
call these services and own the SQLAlchemy session lifecycle.
"""
