"""HTTP interface for the environment variables server.

This package provides a Flask application that exposes an
``EnvVariablesServer`` as JSON endpoints.  It is an **optional**
extra, installed with::

    pip install py-envs[web]

The ``create_app`` factory in ``app.py`` serves everything under
``/services/envs``: the environment snapshot, the registered
collections, the merged collection, and an endpoint that applies the
merge to a caller-supplied environment.
"""
