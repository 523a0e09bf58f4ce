"""
API Routes for the Preset Prompt Engine

This module provides REST API endpoints for editing, publishing and resolving
presets. Editors work against the draft; generation services call the resolve
endpoint, which only ever reads the published configuration.

All responses share one envelope: ``{success, message, data, errors}``.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from aiohttp import web
from aiohttp.web_request import Request
from aiohttp.web_response import Response

from .core.preset import PresetConfig, PresetValidationError, parse_inputs
from .core.resolver import ResolveError, render_preview
from .core.schema import SchemaError, validate_config_document
from .core.storage import PresetNotFoundError, PresetStorage, StorageError
from .core.template import Literal, Reference, TemplateError, parse, serialize, smart_paste
from .core.validation import is_publishable, validate_config, validate_inputs
from .core.versioning import PresetStateError, PublishBlockedError
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)

STORAGE_KEY = web.AppKey("storage", PresetStorage)

routes = web.RouteTableDef()


# =============================================================================
# Response Helpers
# =============================================================================

def create_success_response(message: str, data: Any, status: int = 200) -> Response:
    """
    Create a standardized success response.

    Args:
        message: Success message
        data: Response data
        status: HTTP status code
    """
    return web.json_response({
        "success": True,
        "message": message,
        "data": data,
        "errors": []
    }, status=status)


def create_error_response(message: str, errors: List[str], status: int = 400, data: Any = None) -> Response:
    """
    Create a standardized error response.

    Args:
        message: Error message
        errors: List of error details
        status: HTTP status code
        data: Optional structured details, such as validation issues
    """
    return web.json_response({
        "success": False,
        "message": message,
        "data": data,
        "errors": errors
    }, status=status)


def exception_response(error: Exception, action: str) -> Response:
    """Translate an exception raised while handling a request into an error response"""
    if isinstance(error, PresetNotFoundError):
        return create_error_response("Preset not found", [str(error)], status=404)
    if isinstance(error, PublishBlockedError):
        return create_error_response(
            "Publish blocked by validation issues",
            [issue.message for issue in error.issues],
            status=409,
            data={"issues": [issue.to_dict() for issue in error.issues]},
        )
    if isinstance(error, PresetStateError):
        return create_error_response(f"Cannot {action}", [str(error)], status=409)
    if isinstance(error, ResolveError):
        return create_error_response("Resolution failed", [str(error)], status=422)
    if isinstance(error, (PresetValidationError, SchemaError, TemplateError)):
        return create_error_response("Validation error", [str(error)], status=400)
    if isinstance(error, StorageError):
        logger.error(f"Storage error during {action}: {error}")
        return create_error_response("Storage error", [str(error)], status=500)

    logger.error(f"Failed to {action}: {error}")
    return create_error_response(f"Failed to {action}", ["An unexpected error occurred"], status=500)


async def read_json_object(request: Request) -> Tuple[Optional[Dict[str, Any]], Optional[Response]]:
    """
    Read the request body as a JSON object.

    Returns:
        Tuple of (data, error_response); exactly one of them is None
    """
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Invalid JSON in request to {request.path}: {e}")
        return None, create_error_response("Invalid JSON format", [str(e)], status=400)

    if not isinstance(data, dict):
        return None, create_error_response("Request body must be a JSON object", ["Invalid data format"], status=400)
    return data, None


def get_storage(request: Request) -> PresetStorage:
    return request.app[STORAGE_KEY]


def preset_payload(preset) -> Dict[str, Any]:
    payload = preset.to_dict()
    payload["has_unpublished_changes"] = preset.has_unpublished_changes
    return payload


def config_from_document(document: Any) -> PresetConfig:
    """
    Build a PresetConfig from a request document after schema validation.

    Raises:
        SchemaError: If the document does not match the config schema
        PresetValidationError: If the document cannot form a configuration
    """
    validate_config_document(document)
    return PresetConfig.from_dict(document)


def token_to_dict(token) -> Dict[str, str]:
    if isinstance(token, Reference):
        return {"type": "reference", "kind": token.kind, "name": token.name}
    return {"type": "literal", "text": token.text}


def token_from_dict(data: Any):
    """
    Raises:
        TemplateError: If the token object is malformed
    """
    if not isinstance(data, dict):
        raise TemplateError("Each token must be an object")
    token_type = data.get("type")
    if token_type == "literal" and isinstance(data.get("text"), str):
        return Literal(data["text"])
    if token_type == "reference" and isinstance(data.get("name"), str):
        return Reference(data.get("kind"), data["name"])
    raise TemplateError(f"Malformed token: {data!r}")


# =============================================================================
# Preset Endpoints
# =============================================================================

@routes.get("/presets")
async def list_presets(request: Request) -> Response:
    """List presets; soft-deleted ones only with ``?include_deleted=true``"""
    include_deleted = request.query.get("include_deleted", "").lower() in ("1", "true", "yes")
    try:
        presets = get_storage(request).load_all_presets(include_deleted=include_deleted)
        return create_success_response(
            "Presets retrieved successfully",
            [preset_payload(preset) for preset in presets]
        )
    except Exception as e:
        return exception_response(e, "list presets")


@routes.post("/presets")
async def create_preset(request: Request) -> Response:
    """Create a preset from ``{name, config?}``; nothing is published yet"""
    data, error = await read_json_object(request)
    if error:
        return error

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return create_error_response("Missing required field: name", ["Field 'name' is required"], status=400)

    try:
        config = config_from_document(data["config"]) if data.get("config") is not None else None
        preset = get_storage(request).create(name, config)
        return create_success_response("Preset created successfully", preset_payload(preset), status=201)
    except Exception as e:
        return exception_response(e, "create preset")


@routes.get("/presets/{id}")
async def get_preset(request: Request) -> Response:
    preset_id = request.match_info["id"]
    try:
        preset = get_storage(request).load_preset(preset_id)
        return create_success_response("Preset retrieved successfully", preset_payload(preset))
    except Exception as e:
        return exception_response(e, "get preset")


@routes.put("/presets/{id}/draft")
async def update_draft(request: Request) -> Response:
    """Replace the draft configuration; the published slot is untouched"""
    preset_id = request.match_info["id"]
    data, error = await read_json_object(request)
    if error:
        return error

    try:
        config = config_from_document(data)
        preset = get_storage(request).update_draft(preset_id, lambda _draft: config)
        return create_success_response("Draft saved successfully", preset_payload(preset))
    except Exception as e:
        return exception_response(e, "update draft")


@routes.post("/presets/{id}/publish")
async def publish_preset(request: Request) -> Response:
    preset_id = request.match_info["id"]
    try:
        preset = get_storage(request).publish(preset_id)
        return create_success_response(
            f"Preset published at version {preset.published_version}",
            preset_payload(preset)
        )
    except Exception as e:
        return exception_response(e, "publish preset")


@routes.post("/presets/{id}/discard")
async def discard_draft(request: Request) -> Response:
    """Reset the draft to the published configuration"""
    preset_id = request.match_info["id"]
    try:
        preset = get_storage(request).discard_draft(preset_id)
        return create_success_response("Draft changes discarded", preset_payload(preset))
    except Exception as e:
        return exception_response(e, "discard draft")


@routes.delete("/presets/{id}")
async def delete_preset(request: Request) -> Response:
    preset_id = request.match_info["id"]
    try:
        preset = get_storage(request).delete(preset_id)
        return create_success_response(f"Preset '{preset.name}' deleted successfully", preset_payload(preset))
    except Exception as e:
        return exception_response(e, "delete preset")


@routes.get("/presets/{id}/issues")
async def get_draft_issues(request: Request) -> Response:
    """Validate the draft and report every issue with its publish impact"""
    preset_id = request.match_info["id"]
    try:
        preset = get_storage(request).load_preset(preset_id)
        issues = validate_config(preset.draft)
        return create_success_response(
            f"Found {len(issues)} issue(s)",
            {
                "publishable": is_publishable(issues),
                "issues": [issue.to_dict() for issue in issues],
            }
        )
    except Exception as e:
        return exception_response(e, "validate draft")


@routes.post("/presets/{id}/preview")
async def preview_draft(request: Request) -> Response:
    """
    Render the draft with ``{inputs}`` for the editor.

    Problems show up as placeholders in the text, so this never fails with
    a resolution error. The payload also lists required variables the
    inputs leave unfilled, with ``status`` "incomplete" while any remain.
    """
    preset_id = request.match_info["id"]
    data, error = await read_json_object(request)
    if error:
        return error

    try:
        preset = get_storage(request).load_preset(preset_id)
        inputs = parse_inputs(data.get("inputs"))
        payload = render_preview(preset.draft, inputs).to_dict()
        input_issues = validate_inputs(preset.draft, inputs)
        payload["input_issues"] = [issue.to_dict() for issue in input_issues]
        payload["status"] = "incomplete" if input_issues else "valid"
        return create_success_response("Preview rendered", payload)
    except Exception as e:
        return exception_response(e, "render preview")


@routes.post("/presets/{id}/resolve")
async def resolve_preset(request: Request) -> Response:
    """
    Resolve the published configuration with ``{inputs}``.

    Text inputs are strings; image inputs are objects with an ``asset_ref``.
    """
    preset_id = request.match_info["id"]
    data, error = await read_json_object(request)
    if error:
        return error

    try:
        output = get_storage(request).resolve(preset_id, parse_inputs(data.get("inputs")))
        return create_success_response("Preset resolved", output.to_dict())
    except Exception as e:
        return exception_response(e, "resolve preset")


# =============================================================================
# Template Endpoints
# =============================================================================

@routes.post("/templates/parse")
async def parse_template(request: Request) -> Response:
    data, error = await read_json_object(request)
    if error:
        return error

    try:
        tokens = parse(data.get("template") or "")
        return create_success_response("Template parsed", [token_to_dict(token) for token in tokens])
    except Exception as e:
        return exception_response(e, "parse template")


@routes.post("/templates/serialize")
async def serialize_template(request: Request) -> Response:
    data, error = await read_json_object(request)
    if error:
        return error

    tokens = data.get("tokens")
    if not isinstance(tokens, list):
        return create_error_response("Missing required field: tokens", ["Field 'tokens' must be a list"], status=400)

    try:
        template = serialize(token_from_dict(item) for item in tokens)
        return create_success_response("Template serialized", {"template": template})
    except Exception as e:
        return exception_response(e, "serialize template")


@routes.post("/templates/smart_paste")
async def smart_paste_text(request: Request) -> Response:
    """Convert pasted text with ``@name`` shorthand against ``variable_names`` and ``media_names``"""
    data, error = await read_json_object(request)
    if error:
        return error

    names = {}
    for field_name in ("variable_names", "media_names"):
        value = data.get(field_name)
        if value is None:
            value = []
        if not isinstance(value, list) or not all(isinstance(name, str) for name in value):
            return create_error_response(
                f"Invalid field: {field_name}", [f"Field '{field_name}' must be a list of names"], status=400
            )
        names[field_name] = value

    try:
        tokens = smart_paste(data.get("text") or "", names["variable_names"], names["media_names"])
        return create_success_response("Text converted", [token_to_dict(token) for token in tokens])
    except Exception as e:
        return exception_response(e, "convert pasted text")


# =============================================================================
# Application Setup
# =============================================================================

def create_app(settings: Optional[Settings] = None, storage: Optional[PresetStorage] = None) -> web.Application:
    """
    Build the aiohttp application with storage and routes wired in.

    Args:
        settings: Runtime settings; read from the environment when None
        storage: Storage to serve; created in ``settings.storage_dir`` when None
    """
    settings = settings or load_settings()
    app = web.Application()
    app[STORAGE_KEY] = storage or PresetStorage(settings.storage_dir)
    app.add_routes(routes)
    logger.info(f"Preset API serving storage at {app[STORAGE_KEY].storage_file}")
    return app


def main() -> None:
    """Console entry point: run the API server with environment settings"""
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    web.run_app(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
