"""Flask front end for py-httpd.

This package serves the same document root through a Flask (WSGI)
application instead of the raw socket loop.  It is an **optional** extra
— install with::

    pip install py-httpd[web]

The ``create_app`` factory in ``app.py`` builds a ``Responder`` and
routes every ``GET`` path through it, so both front ends answer with the
same status codes and bodies.
"""
