"""Flask application factory for the environment variables service.

The ``create_app`` function wraps an ``EnvVariablesServer`` and returns
a Flask app with these endpoints, all under ``ENV_VARIABLES_PATH``:

- ``GET /variables``: every variable in the environment snapshot.
- ``GET /variables/<name>``: one variable, or 404.
- ``GET /paths``: interpreter path, home and config directory URIs.
- ``GET /collections``: every registered collection.
- ``PUT /collections/<extension>``: register or overwrite a collection.
- ``DELETE /collections/<extension>``: withdraw a collection.
- ``GET /merged``: the merged collection.
- ``POST /apply``: apply the merge to the posted environment.
"""

from __future__ import annotations

from typing import Any

from flask import Flask, Response, jsonify, request

from py_envs.mutators import CollectionFormatError, collection_from_serializable
from py_envs.server import EnvVariablesServer

ENV_VARIABLES_PATH = "/services/envs"

_HTTP_NO_CONTENT = 204
_HTTP_BAD_REQUEST = 400
_HTTP_NOT_FOUND = 404


def create_app(server: EnvVariablesServer | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        server: The server to expose.  A new one snapshotting
            ``os.environ`` is created if omitted.

    Returns:
        A configured Flask application ready to serve.

    """
    env_server = server if server is not None else EnvVariablesServer()

    app = Flask(__name__)

    @app.route(f"{ENV_VARIABLES_PATH}/variables")
    def variables() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return every variable as ``[{"name", "value"}]``."""
        return jsonify([{"name": v.name, "value": v.value} for v in env_server.get_variables()])

    @app.route(f"{ENV_VARIABLES_PATH}/variables/<name>")
    def variable(name: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return a single variable, or 404 if it is not set."""
        found = env_server.get_value(name)
        if found is None:
            return jsonify({"error": f"Variable '{name}' is not set"}), _HTTP_NOT_FOUND
        return jsonify({"name": found.name, "value": found.value})

    @app.route(f"{ENV_VARIABLES_PATH}/paths")
    def paths() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the interpreter path and the home and config directory URIs."""
        return jsonify(
            {
                "execPath": env_server.get_exec_path(),
                "homeDirUri": env_server.get_home_dir_uri(),
                "configDirUri": env_server.get_config_dir_uri(),
            }
        )

    @app.route(f"{ENV_VARIABLES_PATH}/collections")
    def collections() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return every registered collection keyed by extension."""
        return jsonify(
            {
                extension: {
                    "persistent": collection.persistent,
                    "collection": collection.to_serializable(),
                }
                for extension, collection in env_server.collections.items()
            }
        )

    @app.route(f"{ENV_VARIABLES_PATH}/collections/<extension>", methods=["PUT"])
    def set_collection(extension: str) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Register a collection.

        Expects JSON body: ``{"persistent": bool, "collection": [[name, mutator], ...]}``

        """
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or "collection" not in data:
            return jsonify({"error": "Missing 'collection' field"}), _HTTP_BAD_REQUEST
        persistent = data.get("persistent", False)
        if not isinstance(persistent, bool):
            return jsonify({"error": "'persistent' must be a boolean"}), _HTTP_BAD_REQUEST
        try:
            collection = collection_from_serializable(data["collection"], persistent=persistent)
        except CollectionFormatError as e:
            return jsonify({"error": str(e)}), _HTTP_BAD_REQUEST
        env_server.set(extension, persistent, collection)
        return Response(status=_HTTP_NO_CONTENT)

    @app.route(f"{ENV_VARIABLES_PATH}/collections/<extension>", methods=["DELETE"])
    def delete_collection(extension: str) -> Response:  # pyright: ignore[reportUnusedFunction]
        """Withdraw a collection; unknown extensions are ignored."""
        env_server.delete(extension)
        return Response(status=_HTTP_NO_CONTENT)

    @app.route(f"{ENV_VARIABLES_PATH}/merged")
    def merged() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the merged collection."""
        return jsonify(env_server.merged_collection.to_dict())

    @app.route(f"{ENV_VARIABLES_PATH}/apply", methods=["POST"])
    def apply() -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Apply the merged collection to the posted environment.

        Expects JSON body: ``{"env": {"NAME": "value" | null, ...}}``

        Returns:
            JSON with the rewritten ``env``.

        """
        data = request.get_json(silent=True)
        env = data.get("env") if isinstance(data, dict) else None
        if not _is_snapshot(env):
            return jsonify({"error": "'env' must map names to strings or null"}), _HTTP_BAD_REQUEST
        return jsonify({"env": env_server.apply_to_environment(env)})

    return app


def _is_snapshot(env: Any) -> bool:
    return isinstance(env, dict) and all(
        isinstance(key, str) and (value is None or isinstance(value, str))
        for key, value in env.items()
    )


def main() -> None:
    """Run the development server.

    This is the ``py-envs-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
